"""
Test and development data helpers.
"""
import random
import re
import unicodedata
from typing import Iterable, List, Optional, Sequence, Set

DEFAULT_SUBJECTS = (
    "Mathematics", "Physics", "Chemistry", "Biology",
    "English", "History", "Geography", "Computer Science",
)


def slugify(value: str) -> str:
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^\w\s-]", "", value).strip().lower()
    return re.sub(r"[-_\s]+", "-", value)


def unique_slug(name: str, taken: Iterable[str]) -> str:
    """slug, slug-1, slug-2, ... whichever is free first."""
    taken = set(taken)
    base = slugify(name)
    slug, counter = base, 1
    while slug in taken:
        slug = f"{base}-{counter}"
        counter += 1
    return slug


class SubjectNameGenerator:
    """
    Hands out subject names without repeats until the catalogue is exhausted,
    then starts over. Each generator owns its exhaustion set, so two
    generators (or two test runs) never affect each other.
    """

    def __init__(self, catalogue: Sequence[str] = DEFAULT_SUBJECTS, seed: Optional[int] = None):
        if not catalogue:
            raise ValueError("catalogue must not be empty")
        self.catalogue: List[str] = list(dict.fromkeys(catalogue))
        self.used: Set[str] = set()
        self._rng = random.Random(seed)

    def next_name(self) -> str:
        available = [name for name in self.catalogue if name not in self.used]
        if not available:
            self.used.clear()
            available = list(self.catalogue)
        name = self._rng.choice(available)
        self.used.add(name)
        return name

    def next_subject(self, taken_slugs: Iterable[str] = ()) -> dict:
        name = self.next_name()
        return {"name": name, "slug": unique_slug(name, taken_slugs), "description": f"{name} lessons and assessments"}

    def reset(self) -> None:
        self.used.clear()
