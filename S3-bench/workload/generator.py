"""
Deterministic key-path generator reproducing a backup product's block layout.

Example of a generated key (uploaded below ``PATTERN_PREFIX``)::

    2405a682-1362-4eed-9d8a-582a62cab164/2005ac25-ba22-453a-b3ed-a509ee49130f/
    blocks/4dcb5c69321eaac6/10469529.c401cbbc222c3280.00000000000000000000000000000000.blk

    UUID1/UUID2/blocks/HEX3/NUM4.HEX5.HEX6
         ^ f1       ^ f2  ^ f3

so ``f1 x f2 x f3`` bounds the number of objects below one UUID1 folder.
"""

from typing import List, Tuple

from configuration import PATTERN_EXTENSION, PATTERN_ZERO_SUFFIX

MASK64 = 0xFFFFFFFFFFFFFFFF
MASK32 = 0xFFFFFFFF
MASK16 = 0xFFFF

_FMIX_C1 = 0xFF51AFD7ED558CCD
_FMIX_C2 = 0xC4CEB9FE1A85EC53


def fmix64(h: int) -> int:
    """murmur3 64-bit finalizer."""
    h ^= h >> 33
    h = (h * _FMIX_C1) & MASK64
    h ^= h >> 33
    h = (h * _FMIX_C2) & MASK64
    h ^= h >> 33
    return h


class Seed:
    """64-bit PRNG state owned by a single lane.

    Two instances created from the same value produce identical sequences.
    A seed of 0 is a fixed point of the mixer and is rejected by config
    validation.
    """

    def __init__(self, value: int):
        self.state = value & MASK64

    def next(self) -> int:
        """Mix the state and return the new value."""
        self.state = fmix64(self.state)
        return self.state

    def next_uuid(self) -> str:
        p1 = self.state
        p2 = self.next()
        return "%08x-%04x-%04x-%04x-%012x" % (
            (p1 >> 32) & MASK32,
            (p1 >> 16) & MASK16,
            p1 & MASK16,
            p2 & MASK16,
            p2 >> 16,
        )

    def next_hex16(self) -> str:
        h = self.state
        self.next()
        return "%016x" % h

    def next_int64(self) -> int:
        h = self.state
        self.next()
        return h

    def next_uint16s(self) -> Tuple[int, int, int, int]:
        h = self.state
        self.next()
        return (h >> 48) & MASK16, (h >> 32) & MASK16, (h >> 16) & MASK16, h & MASK16

    def batch_dimensions(self, max_folder1: int, max_folder2: int, max_folder3: int) -> Tuple[int, int, int]:
        """Draw the folder fan-out of the next batch."""
        rand1, rand2, rand3, _ = self.next_uint16s()
        return 1 + rand1 % max_folder1, 1 + rand2 % max_folder2, 1 + rand3 % max_folder3

    def generate_key_batch(self, max_folder1: int, max_folder2: int, max_folder3: int) -> List[str]:
        """Generate one UUID1 folder worth of keys.

        Keys come out in outer -> middle -> inner order. The first key of every
        innermost group carries the all-zero suffix of a head block.
        """
        rand1, rand2, rand3 = self.batch_dimensions(max_folder1, max_folder2, max_folder3)
        keys = []
        for _ in range(rand1):
            for _ in range(rand2):
                for x in range(rand3):
                    line = "%s/%s/blocks/%s/%d.%s." % (
                        self.next_uuid(),
                        self.next_uuid(),
                        self.next_hex16(),
                        self.next_int64(),
                        self.next_hex16(),
                    )
                    if x == 0:
                        line += PATTERN_ZERO_SUFFIX
                    else:
                        line += self.next_hex16() + PATTERN_EXTENSION
                    keys.append(line)
        return keys
