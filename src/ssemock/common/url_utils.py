"""
SSE Mock Identity Utilities

Identity normalization, query parsing and match-policy evaluation.

An identity is usually an absolute URL, but may be any opaque string a
client chooses to key its stream on.
"""

from urllib.parse import urlparse, parse_qsl
from typing import Dict, Any, List, Optional, Union
from dataclasses import dataclass, field


QueryValue = Union[str, List[str]]

DEFAULT_PORTS = {'http': 80, 'https': 443, 'ws': 80, 'wss': 443}


@dataclass
class MatchPolicy:
    """Query-matching policy attached to a mock definition."""

    match_all_queries: bool = False
    match_queries: List[str] = field(default_factory=list)

    @property
    def kind(self) -> str:
        """Name of the effective policy."""
        if self.match_all_queries:
            return 'matchAllQueries'
        if self.match_queries:
            return 'matchQueries'
        return 'ignoreQuery'

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['MatchPolicy']:
        """Create policy from a document's ``matching`` block (None stays None)."""
        if not isinstance(data, dict):
            return None

        keys = data.get('matchQueries') or []
        if not isinstance(keys, list):
            keys = []

        return cls(
            # Only a JSON true enables it; strings such as "false" do not
            match_all_queries=data.get('matchAllQueries') is True,
            match_queries=[str(k) for k in keys]
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the document's ``matching`` block."""
        return {
            'matchAllQueries': self.match_all_queries,
            'matchQueries': list(self.match_queries)
        }


class IdentityMatcher:
    """Handles identity matching under the supported query policies."""

    @staticmethod
    def is_absolute_url(identity: str) -> bool:
        """True when identity has both a scheme and a network location."""
        try:
            parsed = urlparse(identity)
        except ValueError:
            return False
        return bool(parsed.scheme and parsed.netloc)

    @staticmethod
    def normalize_base(identity: str) -> str:
        """
        Strip the query component from an identity.

        Absolute URLs reduce to ``scheme://host[:port]/path`` with scheme and
        host lower-cased, userinfo and the scheme's default port dropped, and
        an empty path normalized to ``/``. Anything else falls back to the
        substring before the first ``?``.

        Args:
            identity: Identity to normalize

        Returns:
            Base identity without query parameters
        """
        if IdentityMatcher.is_absolute_url(identity):
            parsed = urlparse(identity)
            scheme = parsed.scheme.lower()
            path = parsed.path or '/'
            return f"{scheme}://{IdentityMatcher._host(parsed, scheme)}{path}"

        return identity.split('?', 1)[0]

    @staticmethod
    def _host(parsed, scheme: str) -> str:
        """Host and non-default port of a parsed URL."""
        host = parsed.hostname or ''
        if ':' in host:
            host = f"[{host}]"

        try:
            port = parsed.port
        except ValueError:
            # Unparseable port: keep the raw netloc minus userinfo
            return parsed.netloc.rsplit('@', 1)[-1].lower()

        if port is None or DEFAULT_PORTS.get(scheme) == port:
            return host
        return f"{host}:{port}"

    @staticmethod
    def parse_query(identity: str) -> Dict[str, QueryValue]:
        """
        Parse the query component of an identity.

        Repeated keys accumulate into a list in encounter order. Identities
        without a parseable query yield an empty mapping.

        Args:
            identity: Identity to parse

        Returns:
            Mapping of key to value, or key to list of values
        """
        if IdentityMatcher.is_absolute_url(identity):
            query = urlparse(identity).query
        elif '?' in identity:
            query = identity.split('?', 1)[1].split('#', 1)[0]
        else:
            return {}

        try:
            pairs = parse_qsl(query, keep_blank_values=True)
        except ValueError:
            return {}

        params: Dict[str, QueryValue] = {}
        for key, value in pairs:
            if not key:
                continue
            if key not in params:
                params[key] = value
            elif isinstance(params[key], list):
                params[key].append(value)
            else:
                params[key] = [params[key], value]

        return params

    @staticmethod
    def compare_queries(
        candidate_params: Dict[str, QueryValue],
        requested_params: Dict[str, QueryValue],
        policy: MatchPolicy
    ) -> bool:
        """
        Compare parsed query mappings under a policy.

        Args:
            candidate_params: Query of the mock definition's identity
            requested_params: Query of the requested identity
            policy: Policy deciding which keys must agree

        Returns:
            True if the queries agree
        """
        if policy.match_all_queries:
            if len(candidate_params) != len(requested_params):
                return False
            if sorted(candidate_params) != sorted(requested_params):
                return False
            return all(candidate_params[k] == requested_params[k] for k in candidate_params)

        for key in policy.match_queries:
            if key not in candidate_params or key not in requested_params:
                return False
            if candidate_params[key] != requested_params[key]:
                return False

        return True

    @staticmethod
    def matches(candidate: str, requested: str, policy: Optional[MatchPolicy] = None) -> bool:
        """
        Decide whether a candidate identity pattern answers a requested identity.

        Args:
            candidate: Identity stored on the mock definition
            requested: Identity the client asked for
            policy: Optional query-matching policy

        Returns:
            True if the candidate matches
        """
        # Exact match first
        if candidate == requested:
            return True

        if IdentityMatcher.normalize_base(candidate) != IdentityMatcher.normalize_base(requested):
            return False

        if policy is None or policy.kind == 'ignoreQuery':
            return True

        return IdentityMatcher.compare_queries(
            IdentityMatcher.parse_query(candidate),
            IdentityMatcher.parse_query(requested),
            policy
        )
