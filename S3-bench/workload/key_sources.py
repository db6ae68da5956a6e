"""
Key sources feeding the operation workers.

``NumberedObjects`` hands out the flat ``Object-<n>`` names of the sequential
benchmark. ``LaneKeySet`` owns the generated key list of one staggered lane;
its PUT, GET, LIST and DELETE workers each walk it with their own cursor.
"""

import random
from typing import List, Optional

from configuration import (
    OBJECT_KEY_PREFIX,
    LIST_PREFIX_MODULUS,
    PATTERN_PREFIX,
)
from workload.generator import Seed


class NumberedObjects:
    """Object naming shared by every worker of a sequential run."""

    def __init__(self, prefix: str = OBJECT_KEY_PREFIX, rng: random.Random = None):
        self.prefix = prefix
        self.rng = rng or random.Random()
        self.uploaded = 0
        self._put_index = 0
        self._delete_index = 0

    def reset(self) -> None:
        self.uploaded = 0
        self._put_index = 0
        self._delete_index = 0

    def key(self, number: int) -> str:
        return f"{self.prefix}{number}"

    def next_put_key(self) -> str:
        self._put_index += 1
        return self.key(self._put_index)

    def random_key(self) -> Optional[str]:
        """Uniform pick over the uploaded objects, None before any upload."""
        if self.uploaded <= 0:
            return None
        return self.key(self.rng.randint(1, self.uploaded))

    def next_delete_key(self) -> Optional[str]:
        """Claim the next object to delete, None once all are claimed."""
        if self._delete_index >= self.uploaded:
            return None
        self._delete_index += 1
        return self.key(self._delete_index)

    def list_prefix(self) -> str:
        """Prefix of a reference object, folded onto 100 name groups."""
        number = self.rng.randint(1, max(self.uploaded, 1))
        return self.key(number % LIST_PREFIX_MODULUS)


class LaneKeySet:
    """Keys generated by one lane from its own seed."""

    def __init__(self, seed: int, folder_capacities, prefix: str = PATTERN_PREFIX):
        self.seed = Seed(seed)
        self.folder_capacities = tuple(folder_capacities)
        self.prefix = prefix
        self.objects: List[str] = []
        self._put_counter = 0
        self._get_counter = 0
        self._delete_counter = 0
        self._list_counter = 0

    def __len__(self) -> int:
        return len(self.objects)

    def object_key(self, name: str) -> str:
        return self.prefix + name

    def append_batch(self) -> int:
        batch = self.seed.generate_key_batch(*self.folder_capacities)
        self.objects.extend(batch)
        return len(batch)

    def next_put_key(self) -> str:
        while self._put_counter >= len(self.objects):
            self.append_batch()
        name = self.objects[self._put_counter]
        self._put_counter += 1
        return self.object_key(name)

    def next_get_key(self) -> Optional[str]:
        if not self.objects:
            return None
        name = self.objects[self._get_counter % len(self.objects)]
        self._get_counter += 1
        return self.object_key(name)

    def next_delete_key(self) -> Optional[str]:
        if self._delete_counter >= len(self.objects):
            return None
        name = self.objects[self._delete_counter]
        self._delete_counter += 1
        return self.object_key(name)

    def next_list_prefix(self) -> Optional[str]:
        """Truncate a known key at a rotating depth.

        The cycle is: top folder, parent folder, grandparent folder, bare
        pattern prefix.
        """
        if not self.objects:
            return None
        name = self.objects[self._list_counter % len(self.objects)]
        self._list_counter += 1
        depth = self._list_counter % 4
        if depth == 0:
            return self.prefix + name.split("/", 1)[0]
        if depth == 1:
            return self.prefix + name.rsplit("/", 1)[0]
        if depth == 2:
            return self.prefix + name.rsplit("/", 2)[0]
        return self.prefix
