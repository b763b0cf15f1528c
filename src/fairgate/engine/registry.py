"""
FairGate Policy Registry

Resolves a market id to its MarketPolicyProfile.

Key features:
- Case-insensitive lookup (legacy callers send "nyc", current callers "NYC")
- Explicit, logged behaviour for unregistered markets (fail open or closed)
- Whole-table replacement on reload; profiles are never mutated in place
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from ..exceptions import MarketNotFoundError
from ..models import (
    DEFAULT_MARKET_PACK_ID,
    DEFAULT_POLICY_VERSION,
    DEFAULT_RESTRICTED_CHECKS,
    MarketPolicyProfile,
    UnknownMarketMode,
    closed_profile,
    unenforced_profile,
)
from ..packs import MarketPackLoader, default_packs_dir


logger = logging.getLogger(__name__)


def normalize_market_id(market_id: str) -> str:
    """Registry key for a market id."""
    return str(market_id).strip().upper()


class PolicyRegistry:
    """
    Immutable market id -> profile table.

    Usage:
        registry = PolicyRegistry.from_directory("packs/")
        profile = registry.lookup("nyc")        # NYC profile
        profile = registry.lookup("boston")     # default, logged at WARNING

    Unregistered markets resolve according to unknown_market_mode:
    FAIL_OPEN yields an unenforced profile described by the default pack;
    FAIL_CLOSED yields an enforced profile with no edges and no unlock state.
    """

    def __init__(
        self,
        profiles: Iterable[MarketPolicyProfile] = (),
        unknown_market_mode: Union[UnknownMarketMode, str] = UnknownMarketMode.FAIL_OPEN,
        default_pack_id: str = DEFAULT_MARKET_PACK_ID,
        default_pack_version: str = "0.0.0",
        default_policy_version: str = DEFAULT_POLICY_VERSION,
    ):
        table: dict[str, MarketPolicyProfile] = {}
        for profile in profiles:
            key = normalize_market_id(profile.market_id)
            if key in table:
                raise ValueError(f"Market '{key}' registered more than once")
            table[key] = profile
        self._profiles = table
        self.unknown_market_mode = UnknownMarketMode(unknown_market_mode)
        self.default_pack_id = default_pack_id
        self.default_pack_version = default_pack_version
        self.default_policy_version = default_policy_version

    @classmethod
    def from_directory(
        cls,
        directory: Union[str, Path],
        unknown_market_mode: Union[UnknownMarketMode, str] = UnknownMarketMode.FAIL_OPEN,
        strict_version: bool = True,
    ) -> "PolicyRegistry":
        """
        Build a registry from a packs directory containing markets.yaml.

        Raises:
            PackLoadError / PackValidationError / PackVersionMismatch
        """
        table = MarketPackLoader(strict_version=strict_version).load_directory(directory)
        return cls(
            table.profiles.values(),
            unknown_market_mode=unknown_market_mode,
            default_pack_id=table.default_pack.id,
            default_pack_version=table.default_pack.version,
            default_policy_version=table.default_pack.policy_version,
        )

    def lookup(self, market_id: str) -> MarketPolicyProfile:
        """Profile for market_id; unregistered markets get the default profile."""
        key = normalize_market_id(market_id)
        profile = self._profiles.get(key)
        if profile is not None:
            return profile

        if self.unknown_market_mode == UnknownMarketMode.FAIL_CLOSED:
            logger.warning(
                "Unregistered market %r: failing closed (all transitions and "
                "restricted checks blocked)", key,
            )
            return closed_profile(
                key,
                policy_version=self.default_policy_version,
                restricted_checks=self._restricted_checks(),
            )

        logger.warning(
            "Unregistered market %r: failing open with unenforced profile from %s",
            key, self.default_pack_id,
        )
        return unenforced_profile(
            key,
            market_pack_id=self.default_pack_id,
            market_pack_version=self.default_pack_version,
            policy_version=self.default_policy_version,
        )

    def get(self, market_id: str) -> MarketPolicyProfile:
        """
        Strict lookup.

        Raises:
            MarketNotFoundError: If market_id is not registered
        """
        key = normalize_market_id(market_id)
        profile = self._profiles.get(key)
        if profile is None:
            raise MarketNotFoundError(
                message=f"Market not registered: {key}",
                details={"available": sorted(self._profiles)},
                market_id=key,
            )
        return profile

    def is_registered(self, market_id: str) -> bool:
        return normalize_market_id(market_id) in self._profiles

    def market_ids(self) -> list[str]:
        """Sorted ids of every registered market."""
        return sorted(self._profiles)

    def profiles(self) -> list[MarketPolicyProfile]:
        return [self._profiles[k] for k in self.market_ids()]

    def _restricted_checks(self):
        # Union of every registered enforced market, so a fail-closed profile
        # never restricts less than a registered one.
        restricted = set(DEFAULT_RESTRICTED_CHECKS)
        for profile in self._profiles.values():
            if profile.requires_gate:
                restricted.update(profile.restricted_checks)
        return frozenset(restricted)

    def __contains__(self, market_id: object) -> bool:
        return isinstance(market_id, str) and self.is_registered(market_id)

    def __len__(self) -> int:
        return len(self._profiles)

    def __iter__(self) -> Iterator[str]:
        return iter(self.market_ids())

    def __repr__(self) -> str:
        return (
            f"PolicyRegistry(markets={len(self)}, "
            f"unknown_market_mode={self.unknown_market_mode.value})"
        )


class ReloadableRegistry:
    """
    Registry handle whose table can be swapped at runtime.

    reload() replaces the whole PolicyRegistry reference in one assignment,
    so a gate call sees either the old table or the new one, never a mix.
    """

    def __init__(self, registry: PolicyRegistry):
        self._current = registry

    @property
    def current(self) -> PolicyRegistry:
        return self._current

    def reload(self, registry: PolicyRegistry) -> PolicyRegistry:
        """Swap in a new registry and return the previous one."""
        previous = self._current
        self._current = registry
        logger.info(
            "Policy registry reloaded: %d -> %d market(s)", len(previous), len(registry)
        )
        return previous

    def lookup(self, market_id: str) -> MarketPolicyProfile:
        return self._current.lookup(market_id)

    def get(self, market_id: str) -> MarketPolicyProfile:
        return self._current.get(market_id)

    def is_registered(self, market_id: str) -> bool:
        return self._current.is_registered(market_id)

    def market_ids(self) -> list[str]:
        return self._current.market_ids()

    def __contains__(self, market_id: object) -> bool:
        return market_id in self._current

    def __len__(self) -> int:
        return len(self._current)


def load_default_registry(
    unknown_market_mode: Union[UnknownMarketMode, str] = UnknownMarketMode.FAIL_OPEN,
    packs_dir: Optional[Union[str, Path]] = None,
) -> PolicyRegistry:
    """Registry built from the packs shipped with the package (or packs_dir)."""
    return PolicyRegistry.from_directory(
        packs_dir or default_packs_dir(),
        unknown_market_mode=unknown_market_mode,
    )
