"""Bundled taxonomy definitions and the point-in-time snapshot used by classifiers.

The category tree is two levels deep. Only leaf categories receive
assignments; parents exist for navigation and rollups. Keywords live next to
the leaf they score so the keyword table and the stored taxonomy cannot drift.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from redditpulse.core.exceptions import ConfigError


@dataclass(frozen=True)
class CategoryDefinition:
    name: str
    description: str = ""
    keywords: tuple[str, ...] = ()
    children: tuple["CategoryDefinition", ...] = ()


@dataclass(frozen=True)
class ProductAreaDefinition:
    name: str
    description: str = ""


def _leaf(name: str, description: str, *keywords: str) -> CategoryDefinition:
    return CategoryDefinition(name=name, description=description, keywords=tuple(keywords))


DEFAULT_CATEGORY_TREE: tuple[CategoryDefinition, ...] = (
    CategoryDefinition(
        name="Knowledge & Data",
        description="Knowledge sources, retrieval and grounding data",
        children=(
            _leaf(
                "Knowledge",
                "Knowledge sources, documents and retrieval",
                "knowledge", "knowledge source", "knowledge base", "documents", "files",
                "upload", "sharepoint", "onedrive", "semantic", "search", "rag",
                "retrieval", "grounding", "citation",
            ),
            _leaf(
                "Data Sources & Grounding",
                "Dataverse, SQL and other grounding data",
                "data source", "grounding", "dataverse", "database", "sql", "api",
                "connector", "data", "source",
            ),
        ),
    ),
    CategoryDefinition(
        name="Agent Building",
        description="Authoring topics, triggers, actions and state",
        children=(
            _leaf(
                "Topics",
                "Topics, nodes and conversation design",
                "topic", "subject", "node", "dialog", "conversation flow", "intent",
                "utterance", "phrase",
            ),
            _leaf(
                "Triggers",
                "Events and conversation starts",
                "trigger", "event", "webhook", "start", "invoke", "when", "on message",
                "conversation start",
            ),
            _leaf(
                "Actions / Tools",
                "Custom actions, plugins and tool use",
                "action", "tool", "function", "api call", "custom action", "plugin",
                "skill", "capability", "tool use",
            ),
            _leaf(
                "CUA",
                "Variables, context and session state",
                "cua", "custom user attribute", "attribute", "variable", "context",
                "session", "state",
            ),
        ),
    ),
    CategoryDefinition(
        name="Automation & Integrations",
        description="Flows and connections to other systems",
        children=(
            _leaf(
                "Flows",
                "Power Automate, logic apps and orchestration",
                "flow", "power automate", "logic app", "workflow", "orchestration",
                "sequence", "branching", "conditional",
            ),
            _leaf(
                "Integrations",
                "MCP, connectors and third-party systems",
                "integration", "integrate", "connect", "mcp", "third party", "external",
                "api", "webhook", "connector",
            ),
        ),
    ),
    CategoryDefinition(
        name="AI Quality",
        description="Answer quality and evaluation",
        children=(
            _leaf(
                "GenAI Quality / Reliability / Hallucinations",
                "Accuracy and reliability of generated answers",
                "hallucination", "accuracy", "incorrect", "wrong", "quality",
                "reliability", "gen ai", "generative", "llm", "model",
                "response quality",
            ),
            _leaf(
                "Evals",
                "Testing and measuring agents",
                "eval", "evaluation", "test", "testing", "quality", "assessment",
                "measure", "metric",
            ),
        ),
    ),
    CategoryDefinition(
        name="Platform & Administration",
        description="Licensing, limits, identity, governance and performance",
        children=(
            _leaf(
                "Licensing",
                "Plans, pricing and subscriptions",
                "license", "licensing", "subscription", "plan", "pricing", "cost",
                "tier", "premium",
            ),
            _leaf(
                "Quotas / Limits / Entitlements",
                "Capacity, usage and throttling limits",
                "quota", "limit", "throttle", "rate limit", "entitlement", "capacity",
                "usage", "exceeded",
            ),
            _leaf(
                "Authentication / Authorization / Identity",
                "Sign-in, SSO, Entra and permissions",
                "auth", "authentication", "authorization", "identity", "sso", "entra",
                "login", "sign in", "permission", "role", "access", "token", "oauth",
                "security",
            ),
            _leaf(
                "Governance / Compliance / Admin Controls",
                "Policies, DLP and auditing",
                "governance", "compliance", "admin", "policy", "dlp",
                "data loss prevention", "control", "audit", "regulation",
            ),
            _leaf(
                "Performance / Latency / Timeouts / Throttling",
                "Slow responses and timeouts",
                "performance", "latency", "timeout", "slow", "throttling", "speed",
                "delay", "wait", "hang", "freeze",
            ),
        ),
    ),
    CategoryDefinition(
        name="Development & Deployment",
        description="Publishing, ALM and the authoring experience",
        children=(
            _leaf(
                "Publishing / Channels",
                "Teams, web and other channels",
                "publish", "channel", "teams", "web", "mobile", "deployment", "deploy",
                "release",
            ),
            _leaf(
                "DevEx / ALM / Pro-dev / Source Control",
                "Solutions, pipelines and source control",
                "devex", "alm", "pro dev", "professional developer", "source control",
                "git", "deployment", "ci cd", "pipeline", "developer experience",
            ),
            _leaf(
                "UI / UX Bugs & Authoring Issues",
                "Studio editor and canvas problems",
                "ui", "ux", "bug", "interface", "authoring", "studio", "editor",
                "canvas", "visual", "designer", "ui bug",
            ),
        ),
    ),
    CategoryDefinition(
        name="Community & Meta",
        description="Samples, ideas, announcements and everything else",
        children=(
            _leaf(
                "Templates / Samples / Best Practices",
                "Examples, patterns and guides",
                "template", "sample", "example", "best practice", "pattern",
                "recommendation", "guide", "how to",
            ),
            _leaf(
                "Feature Requests / Ideas",
                "Suggestions and wishlists",
                "feature request", "idea", "suggestion", "wishlist", "enhancement",
                "improvement", "could we", "would be nice",
            ),
            _leaf(
                "Announcements / Updates / Meta",
                "Releases, roadmap and subreddit news",
                "announcement", "update", "release", "version", "changelog", "roadmap",
                "coming soon", "new", "meta", "subreddit",
            ),
            _leaf("General", "Posts that do not fit a specific category"),
        ),
    ),
)


DEFAULT_PRODUCT_AREAS: tuple[ProductAreaDefinition, ...] = (
    ProductAreaDefinition("Authoring Canvas", "Topic editor, nodes and the studio UI"),
    ProductAreaDefinition("Generative AI & Knowledge", "Generative answers, knowledge and models"),
    ProductAreaDefinition("Power Automate & Flows", "Agent flows and cloud flows"),
    ProductAreaDefinition("Connectors & Tools", "Connectors, custom actions, MCP servers"),
    ProductAreaDefinition("Channels & Publishing", "Teams, web chat and other channels"),
    ProductAreaDefinition("Administration & Governance", "Admin center, DLP, environments"),
    ProductAreaDefinition("Licensing & Capacity", "Licenses, messages and quotas"),
    ProductAreaDefinition("Analytics & Monitoring", "Conversation analytics and telemetry"),
)


# ---------------------------------------------------------
# Validation / derived tables
# ---------------------------------------------------------
def validate_category_tree(tree: Sequence[CategoryDefinition]) -> None:
    """Raise ConfigError unless the tree is two levels with unique names."""
    seen: set[str] = set()
    for parent in tree:
        if parent.keywords and parent.children:
            raise ConfigError(f"Parent category '{parent.name}' cannot carry keywords")
        for node in (parent, *parent.children):
            if not node.name.strip():
                raise ConfigError("Category names cannot be empty")
            if node.name in seen:
                raise ConfigError(f"Duplicate category name '{node.name}'")
            seen.add(node.name)
        for child in parent.children:
            if child.children:
                raise ConfigError(f"'{child.name}' nests deeper than two levels")


def build_keyword_table(tree: Iterable[CategoryDefinition]) -> Mapping[str, tuple[str, ...]]:
    """Immutable leaf name -> keywords mapping, in tree order."""
    table: dict[str, tuple[str, ...]] = {}
    for parent in tree:
        leaves = parent.children or (parent,)
        for leaf in leaves:
            table[leaf.name] = tuple(leaf.keywords)
    return MappingProxyType(table)


DEFAULT_KEYWORD_TABLE = build_keyword_table(DEFAULT_CATEGORY_TREE)


# ---------------------------------------------------------
# Snapshot
# ---------------------------------------------------------
@dataclass(frozen=True)
class TaxonomySnapshot:
    """Name -> id lookup over the active taxonomy, frozen for one batch."""

    version: int
    category_ids: Mapping[str, int] = field(default_factory=dict)
    product_area_ids: Mapping[str, int] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, categories, product_areas=(), version: int | None = None) -> "TaxonomySnapshot":
        categories = list(categories)
        parents_with_children = {c.parent_id for c in categories if c.parent_id is not None}
        leaves = sorted(
            (c for c in categories if c.id not in parents_with_children),
            key=lambda c: (c.level, c.sort_order, c.id),
        )
        if version is None:
            version = max((c.taxonomy_version for c in categories), default=1)
        return cls(
            version=version,
            category_ids=MappingProxyType({c.name: c.id for c in leaves}),
            product_area_ids=MappingProxyType({p.name: p.id for p in product_areas}),
        )

    @property
    def category_names(self) -> list[str]:
        return list(self.category_ids)

    @property
    def product_area_names(self) -> list[str]:
        return list(self.product_area_ids)

    def category_id(self, name: str) -> int | None:
        return self.category_ids.get(name)

    def product_area_id(self, name: str) -> int | None:
        return self.product_area_ids.get(name)
