"""
SSE Mock Resolver

Selects the single stored mock definition that answers a stream's identity
and optional scenario.

Selection rules:
- Only valid definitions whose identity pattern matches (under the
  definition's own match policy) are candidates
- A requested scenario resolves only to a definition with that exact scenario
- A request without scenario resolves only to a definition without scenario
- Ties go to the first candidate in store order (domain, then file name)
"""

import logging
from typing import List, Dict, Any, Optional
from dataclasses import dataclass

from ..common import IdentityMatcher
from .definition import MockDefinition


@dataclass
class ResolveResult:
    """Result of resolving a stream identity."""

    matched: bool
    definition: Optional[MockDefinition] = None
    reason: str = ""
    identity_matches: int = 0
    scenario_matches: int = 0
    invalid_skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'matched': self.matched,
            'reason': self.reason,
            'mock_id': self.definition.file_id if self.definition else None,
            'domain': self.definition.domain if self.definition else None,
            'identity_matches': self.identity_matches,
            'scenario_matches': self.scenario_matches,
            'invalid_skipped': self.invalid_skipped
        }


class MockResolver:
    """
    Resolves identities against the mock store.

    The store is scanned on every call so that documents written by the
    admin API take effect without a restart.

    Example:
        resolver = MockResolver(store)
        definition = resolver.resolve('https://api.example.com/feed', scenario='slow')

        if definition:
            scheduler.arm(connection_id, definition)
    """

    def __init__(self, store: Any):
        """
        Initialize resolver.

        Args:
            store: Object exposing ``list_all_definitions()``
        """
        self.store = store
        self.logger = logging.getLogger("ssemock.resolver")

    def resolve(self, identity: str, scenario: Optional[str] = None) -> Optional[MockDefinition]:
        """
        Resolve an identity and optional scenario to one definition.

        Args:
            identity: Requested stream identity
            scenario: Requested scenario, if any

        Returns:
            Matching MockDefinition or None
        """
        return self.find_match(identity, scenario).definition

    def find_match(self, identity: str, scenario: Optional[str] = None) -> ResolveResult:
        """
        Resolve with a full result for logging and diagnostics.

        Args:
            identity: Requested stream identity
            scenario: Requested scenario, if any

        Returns:
            ResolveResult with the selected definition or the reason for a miss
        """
        scenario = scenario or None
        with_scenario: List[MockDefinition] = []
        without_scenario: List[MockDefinition] = []
        invalid_skipped = 0

        for domain, file_id, definition in self.store.list_all_definitions():
            if not IdentityMatcher.matches(definition.identity, identity, definition.match_policy):
                continue

            validation = definition.validate()
            if not validation:
                invalid_skipped += 1
                self.logger.warning(
                    f"Skipping invalid mock {domain}/{file_id} for {definition.identity}: "
                    f"{'; '.join(validation.errors)}"
                )
                continue

            if definition.scenario:
                with_scenario.append(definition)
            else:
                without_scenario.append(definition)

        identity_matches = len(with_scenario) + len(without_scenario)

        if scenario:
            selected = next((d for d in with_scenario if d.scenario == str(scenario)), None)
            scenario_matches = sum(1 for d in with_scenario if d.scenario == str(scenario))
            miss_reason = f"No mock with scenario '{scenario}' for {identity}"
        else:
            selected = without_scenario[0] if without_scenario else None
            scenario_matches = len(without_scenario)
            if with_scenario:
                miss_reason = (
                    f"Only scenario mocks match {identity} "
                    f"({', '.join(sorted({d.scenario for d in with_scenario}))}); no scenario requested"
                )
            else:
                miss_reason = f"No mock found for {identity}"

        if selected is None:
            self.logger.info(miss_reason)
            return ResolveResult(
                matched=False,
                reason=miss_reason,
                identity_matches=identity_matches,
                scenario_matches=0,
                invalid_skipped=invalid_skipped
            )

        self.logger.info(f"Mock found for {identity}: {selected.domain}/{selected.file_id}")
        return ResolveResult(
            matched=True,
            definition=selected,
            reason="Scenario match" if scenario else "Identity match",
            identity_matches=identity_matches,
            scenario_matches=scenario_matches,
            invalid_skipped=invalid_skipped
        )
