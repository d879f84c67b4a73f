"""Vote tally engine.

Recomputes a proposal's ``results`` mapping from the complete set of vote
records. Each record's raw ``votes`` payload is decoded into a ballot variant
selected by the proposal's voting type:

    single    {"option": 2}            -> SingleChoice(option=2)
    multiple  [0, 2]                   -> MultipleChoice(options=(0, 2))
    weighted  {"0": 0.25, "1": 0.75}   -> Weighted(weights=((0, 0.25), (1, 0.75)))

Anything that cannot be decoded becomes ``NoContribution`` and adds nothing,
so one bad record never blocks the tally for everyone else.

Totals are accumulated per option and summed with ``math.fsum``, which is
exactly rounded; the result therefore does not depend on the order in which
vote records are supplied.
"""
import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple, Union

import structlog

logger = structlog.get_logger()

Number = Union[int, float]


class VotingType(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"
    WEIGHTED = "weighted"


class VoteLike(Protocol):
    votes: Any
    vote_power: Number


@dataclass(frozen=True)
class SingleChoice:
    option: int

    def contributions(self, vote_power: float) -> Iterator[Tuple[int, float]]:
        yield self.option, vote_power


@dataclass(frozen=True)
class MultipleChoice:
    options: Tuple[int, ...]

    def contributions(self, vote_power: float) -> Iterator[Tuple[int, float]]:
        # Full power to every selected option, not split between them
        for option in self.options:
            yield option, vote_power


@dataclass(frozen=True)
class Weighted:
    weights: Tuple[Tuple[int, float], ...]

    def contributions(self, vote_power: float) -> Iterator[Tuple[int, float]]:
        for option, weight in self.weights:
            yield option, vote_power * weight


@dataclass(frozen=True)
class NoContribution:
    reason: str

    def contributions(self, vote_power: float) -> Iterator[Tuple[int, float]]:
        return iter(())


Ballot = Union[SingleChoice, MultipleChoice, Weighted, NoContribution]


def _as_index(value: Any) -> Optional[int]:
    """Coerce an option index from an int or a decimal string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _as_weight(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    weight = float(value)
    if not math.isfinite(weight) or weight < 0:
        return None
    return weight


def parse_ballot(voting_type: Union[VotingType, str], raw: Any) -> Ballot:
    """Decode a stored ``votes`` payload into a ballot variant."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return NoContribution("payload is not valid JSON")

    try:
        voting_type = VotingType(voting_type)
    except ValueError:
        return NoContribution(f"unknown voting type {voting_type!r}")

    if voting_type is VotingType.SINGLE:
        if not isinstance(raw, dict) or "option" not in raw:
            return NoContribution("single choice payload has no option")
        option = _as_index(raw["option"])
        if option is None:
            return NoContribution("single choice option is not an index")
        return SingleChoice(option)

    if voting_type is VotingType.MULTIPLE:
        if not isinstance(raw, list):
            return NoContribution("multiple choice payload is not a list")
        options = []
        for item in raw:
            option = _as_index(item)
            if option is not None and option not in options:
                options.append(option)
        return MultipleChoice(tuple(options))

    if not isinstance(raw, dict):
        return NoContribution("weighted payload is not a mapping")
    weights = []
    for key, value in raw.items():
        option = _as_index(key)
        weight = _as_weight(value)
        if option is not None and weight is not None:
            weights.append((option, weight))
    return Weighted(tuple(sorted(weights)))


def empty_results(option_count: int) -> Dict[str, int]:
    """Results mapping with every option seeded to zero."""
    return {str(index): 0 for index in range(option_count)}


def normalize_total(total: float) -> Number:
    """Whole-number totals as int, everything else as float."""
    return int(total) if total.is_integer() else total


def compute_results(
    voting_type: Union[VotingType, str],
    option_count: int,
    votes: Iterable[VoteLike],
) -> Dict[str, Number]:
    """Compute the results mapping for a proposal from all of its votes."""
    buckets: List[List[float]] = [[] for _ in range(option_count)]

    for vote in votes:
        ballot = parse_ballot(voting_type, vote.votes)
        if isinstance(ballot, NoContribution):
            logger.debug("Skipping malformed vote", reason=ballot.reason)
            continue

        power = _as_weight(vote.vote_power)
        if power is None:
            logger.debug("Skipping vote with invalid power", vote_power=vote.vote_power)
            continue

        for option, amount in ballot.contributions(power):
            if 0 <= option < option_count:
                buckets[option].append(amount)

    return {str(index): normalize_total(math.fsum(bucket)) for index, bucket in enumerate(buckets)}
