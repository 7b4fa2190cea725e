"""Declarative environment and export tables.

This module is the one place that describes how a package is assembled:

- Which ``wasm-bindgen`` target each runtime environment consumes.
- How each environment's entrypoint initializes the wasm instance.
- Which ``package.json`` export conditions resolve to which environment.

To find out how a given export is produced, start from
:data:`ROOT_EXPORT_MAPPING` and follow the environment it names.
"""

from dataclasses import dataclass
import enum


class BindingTarget(enum.Enum):
    """A ``wasm-bindgen --target`` flavor."""

    # CommonJS output that loads the wasm file with ``fs``.
    NODEJS = "nodejs"
    # ESM output that needs manual initialization.
    WEB = "web"
    # ESM output that expects a bundler to load the wasm.
    BUNDLER = "bundler"

    @property
    def dir_name(self) -> str:
        """Directory name under ``wasm_bindgen/``."""

        return self.value

    @classmethod
    def all(cls) -> tuple["BindingTarget", ...]:
        """Every target the binding-generation phase must produce."""

        return (cls.NODEJS, cls.WEB, cls.BUNDLER)


class InitStrategy(enum.Enum):
    """How an entrypoint brings the wasm instance to a ready state."""

    AUTO_NODEJS = "auto-nodejs"
    BASE64_EMBEDDED = "base64-embedded"
    SYNC_WASM_IMPORT = "sync-wasm-import"
    BUNDLER_PASSTHROUGH = "bundler-passthrough"
    MANUAL = "manual"


@dataclass(frozen=True, slots=True)
class EnvironmentTraits:
    """Static properties of one :class:`Environment`.

    :ivar file_stem: Basename of the environment's entrypoints.
    :ivar binding_target: Binding output the entrypoint re-exports.
    :ivar init_strategy: Initialization policy of the ESM entrypoint.
    :ivar needs_cjs_bundle: Whether esbuild must produce its ``cjs/`` file.
    """

    file_stem: str
    binding_target: BindingTarget
    init_strategy: InitStrategy
    needs_cjs_bundle: bool


class Environment(enum.Enum):
    """A JavaScript runtime scenario the package supports."""

    NODE = "node"
    WEB = "web"
    BUNDLER = "bundler"
    WORKERD = "workerd"
    IIFE = "iife"
    SLIM = "slim"

    @property
    def traits(self) -> EnvironmentTraits:
        return _ENVIRONMENT_TRAITS[self]

    @property
    def file_stem(self) -> str:
        return self.traits.file_stem

    @property
    def binding_target(self) -> BindingTarget:
        return self.traits.binding_target

    @property
    def init_strategy(self) -> InitStrategy:
        return self.traits.init_strategy

    @property
    def needs_cjs_bundle(self) -> bool:
        """Whether the CommonJS form has to be bundled from the ESM entrypoint.

        Node requires its ``.cjs`` wrapper directly. Bundler and Workerd
        resolve ``require`` to the web bundle (see :data:`ROOT_EXPORT_MAPPING`)
        so they have no CommonJS file of their own.
        """

        return self.traits.needs_cjs_bundle


_ENVIRONMENT_TRAITS: dict[Environment, EnvironmentTraits] = {
    Environment.NODE: EnvironmentTraits(
        file_stem="node",
        binding_target=BindingTarget.NODEJS,
        init_strategy=InitStrategy.AUTO_NODEJS,
        needs_cjs_bundle=False,
    ),
    Environment.WEB: EnvironmentTraits(
        file_stem="web",
        binding_target=BindingTarget.WEB,
        init_strategy=InitStrategy.BASE64_EMBEDDED,
        needs_cjs_bundle=True,
    ),
    Environment.BUNDLER: EnvironmentTraits(
        file_stem="bundler",
        binding_target=BindingTarget.BUNDLER,
        init_strategy=InitStrategy.BUNDLER_PASSTHROUGH,
        needs_cjs_bundle=False,
    ),
    Environment.WORKERD: EnvironmentTraits(
        file_stem="workerd",
        binding_target=BindingTarget.WEB,
        init_strategy=InitStrategy.SYNC_WASM_IMPORT,
        needs_cjs_bundle=False,
    ),
    # Bundled from esm/web.js into iife/index.js; never synthesized directly.
    Environment.IIFE: EnvironmentTraits(
        file_stem="index",
        binding_target=BindingTarget.WEB,
        init_strategy=InitStrategy.BASE64_EMBEDDED,
        needs_cjs_bundle=False,
    ),
    Environment.SLIM: EnvironmentTraits(
        file_stem="slim",
        binding_target=BindingTarget.WEB,
        init_strategy=InitStrategy.MANUAL,
        needs_cjs_bundle=True,
    ),
}


def all_environments() -> tuple[Environment, ...]:
    """Environments that get a synthesized ESM entrypoint, in generation order.

    :returns: Ordered environments (IIFE excluded).
    """

    return (
        Environment.NODE,
        Environment.WEB,
        Environment.BUNDLER,
        Environment.WORKERD,
        Environment.SLIM,
    )


class ExportCondition(enum.Enum):
    """A key in the ``exports`` conditional resolution graph."""

    NODE = "node"
    BROWSER = "browser"
    WORKERD = "workerd"
    IMPORT = "import"
    REQUIRE = "require"

    @property
    def is_fallback(self) -> bool:
        """``True`` for the generic ``import``/``require`` keys."""

        return self in (ExportCondition.IMPORT, ExportCondition.REQUIRE)


@dataclass(frozen=True, slots=True)
class ExportMapping:
    """Which environments satisfy one export condition.

    :ivar condition: Condition key in ``package.json``.
    :ivar esm: Environment whose ESM entrypoint answers ``import``.
    :ivar cjs: Environment whose CJS entrypoint answers ``require``.
    """

    condition: ExportCondition
    esm: Environment
    cjs: Environment


# Order is significant: runtime-specific conditions must come before the
# generic import/require fallbacks.
ROOT_EXPORT_MAPPING: tuple[ExportMapping, ...] = (
    # Workers have no CommonJS bundle of their own; require falls back to web.
    ExportMapping(ExportCondition.WORKERD, esm=Environment.WORKERD, cjs=Environment.WEB),
    ExportMapping(ExportCondition.NODE, esm=Environment.NODE, cjs=Environment.NODE),
    # Bundlers load the wasm themselves for ESM; require falls back to web.
    ExportMapping(ExportCondition.BROWSER, esm=Environment.BUNDLER, cjs=Environment.WEB),
    ExportMapping(ExportCondition.IMPORT, esm=Environment.WEB, cjs=Environment.WEB),
    ExportMapping(ExportCondition.REQUIRE, esm=Environment.WEB, cjs=Environment.WEB),
)


def find_export_mapping(condition: ExportCondition) -> ExportMapping:
    """Look up the mapping for ``condition``.

    :param condition: Export condition.
    :returns: The mapping declared for it.
    :raises KeyError: If the condition has no mapping.
    """

    for mapping in ROOT_EXPORT_MAPPING:
        if mapping.condition is condition:
            return mapping
    raise KeyError(condition)
