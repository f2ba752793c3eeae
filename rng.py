# rng.py
import math
import numpy as np

MASK32 = 0xFFFFFFFF


def _imul(a, b):
    # 32-bit integer multiply, low word only
    return (a * b) & MASK32


def fresh_seed():
    """Non-deterministic 32-bit seed for universes built without one."""
    return int(np.random.SeedSequence().entropy) & MASK32


class RNG:
    """
    Seedable random source (mulberry32 on a single 32-bit state word).

    Two instances built from the same seed and driven through the same
    call sequence produce bit-identical streams. Not safe to share across
    concurrently running universes.
    """

    def __init__(self, seed=None):
        if seed is None:
            seed = fresh_seed()
        self.seed = int(seed) & MASK32
        self.state = self.seed

    def random(self):
        """Uniform draw in [0, 1)."""
        self.state = (self.state + 0x6D2B79F5) & MASK32
        t = self.state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & MASK32
        return ((t ^ (t >> 14)) & MASK32) / 4294967296.0

    uniform = random

    def normal(self, mean=0.0, std=1.0):
        u = 0.0
        v = 0.0
        while u == 0.0:
            u = self.random()
        while v == 0.0:
            v = self.random()
        z = math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)
        return mean + std * z

    def tnorm(self, mean=0.0, std=1.0, lo=-math.inf, hi=math.inf):
        """
        Truncated normal by rejection. After 20 rejected draws the next draw
        is clamped into [lo, hi] instead of resampled, which slightly fattens
        the bounds. Event magnitudes are calibrated against this behaviour.
        """
        tries = 0
        while True:
            x = self.normal(mean, std)
            tries += 1
            if tries > 20:
                return min(hi, max(lo, x))
            if lo <= x <= hi:
                return x

    def chance(self, p):
        return self.random() < p

    def pick(self, seq):
        return seq[int(math.floor(self.random() * len(seq)))]
