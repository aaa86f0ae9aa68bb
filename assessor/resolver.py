"""Definition resolution and environment target derivation."""

import logging
from typing import Protocol

from assessor.config import EngineConfig
from assessor.errors import DefinitionInactive, DefinitionNotFound
from assessor.models.domain import AssessmentDefinition, EnvironmentTarget

logger = logging.getLogger(__name__)


class DefinitionStore(Protocol):
    """Read-only access to assessment definitions."""

    def get(self, definition_id: str) -> AssessmentDefinition | None: ...


class DefinitionResolver:
    """Fetches a definition and checks it can be run.

    The fetch happens at execution time and is authoritative: a definition
    deactivated after a dispatch enumerated it is rejected here.
    """

    def __init__(self, store: DefinitionStore):
        self.store = store

    def resolve(self, definition_id: str) -> AssessmentDefinition:
        """Resolve an active definition.

        Raises:
            DefinitionNotFound: No definition with this id
            DefinitionInactive: Definition exists but is not active
        """
        definition = self.store.get(definition_id)
        if definition is None:
            msg = f"Assessment definition '{definition_id}' not found"
            raise DefinitionNotFound(msg)

        if not definition.active:
            msg = f"Assessment definition '{definition_id}' is not active"
            raise DefinitionInactive(msg)

        logger.debug(
            f"Resolved definition {definition_id} with {len(definition.criteria)} criteria"
        )
        return definition


def derive_environment_target(
    subject_id: str, definition: AssessmentDefinition, config: EngineConfig, region: str
) -> EnvironmentTarget:
    """Derive where a subject's resources live from the naming conventions.

    The definition's environment_template wins over the engine default.
    """
    template = definition.environment_template or config.environment_template
    return EnvironmentTarget(
        subject_id=subject_id,
        stack_name=template.format(subject_id=subject_id),
        role_arn=config.role_arn_template.format(
            account_id=config.target_account_id,
            role_name=config.role_name,
            subject_id=subject_id,
        ),
        region=region,
    )
