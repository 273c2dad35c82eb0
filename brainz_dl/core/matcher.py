"""
Scores noisy yt-dlp search results against the wanted track and picks the best.
"""

import logging
from typing import Optional, Sequence

from rapidfuzz import fuzz, process

from brainz_dl.exceptions import NoCandidatesError
from brainz_dl.models.playlist import SearchCandidate, Track

log = logging.getLogger(__name__)

DEFAULT_SCORE_CUTOFF = 50


def normalize(text: Optional[str]) -> str:
    """Case-folds and collapses whitespace."""
    return " ".join((text or "").casefold().split())


class CandidateMatcher:
    """
    Pure, deterministic candidate selection.

    Each candidate gets a title score (wanted title vs. candidate title) plus an
    uploader score (wanted creator vs. uploader). Scores are non-negative ints;
    similarities under `score_cutoff` and missing fields contribute 0.
    """

    def __init__(self, score_cutoff: int = DEFAULT_SCORE_CUTOFF):
        self.score_cutoff = score_cutoff

    def _scores(self, query: str, choices: list[str]) -> list[int]:
        """Scores `query` against every choice, indexed like `choices`."""
        scores = [0] * len(choices)
        if not normalize(query):
            return scores
        matches = process.extract(
            query,
            choices,
            scorer=fuzz.WRatio,
            processor=normalize,
            score_cutoff=self.score_cutoff,
            limit=None,
        )
        for _, score, index in matches:
            if choices[index]:
                scores[index] = max(0, int(round(score)))
        return scores

    def score(self, wanted: Track, candidates: Sequence[SearchCandidate]) -> list[int]:
        """Returns the combined score of every candidate, in input order."""
        title_scores = self._scores(wanted.title, [c.title for c in candidates])
        uploader_scores = self._scores(
            wanted.creator, [c.uploader or "" for c in candidates]
        )
        return [t + u for t, u in zip(title_scores, uploader_scores)]

    def select(
        self, wanted: Track, candidates: Sequence[SearchCandidate]
    ) -> SearchCandidate:
        """
        Picks the candidate with the strictly highest combined score.

        Candidates are scanned in their original order and only a strictly greater
        score replaces the current pick, so ties go to the earliest candidate.

        Raises:
            NoCandidatesError: If `candidates` is empty.
        """
        if not candidates:
            raise NoCandidatesError(f"No candidates to match for '{wanted.title}'.")

        scores = self.score(wanted, candidates)
        best_index, best_score = 0, scores[0]
        for i, score in enumerate(scores):
            if score > best_score:
                best_index, best_score = i, score

        log.debug(
            f"Matched '{wanted.display_name}' to '{candidates[best_index].title}' "
            f"(candidate {best_index + 1}/{len(candidates)}, score {best_score})"
        )
        return candidates[best_index]


def select(wanted: Track, candidates: Sequence[SearchCandidate]) -> SearchCandidate:
    """Module-level shortcut using the default matcher settings."""
    return CandidateMatcher().select(wanted, candidates)
