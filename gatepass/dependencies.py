"""Factory functions wiring the gate-pass core to its HTTP collaborators.

Presentation code builds one ``GatePassWorkflowService`` per signed-in role
and keeps it for the life of the session so the identity cache is shared by
every view of that role.
"""

from typing import Optional

from gatepass.core.config import Settings, settings as default_settings
from gatepass.core.directory_client import IdentityDirectoryClient
from gatepass.core.erp_client import ErpClient
from gatepass.core.exceptions import ConfigurationError
from gatepass.core.workflow_client import WorkflowBackendClient
from gatepass.schemas.view import ViewRole
from gatepass.services.enrichment import EnrichmentPipeline
from gatepass.services.identity import IdentityResolver
from gatepass.services.ledger import ReturnableItemsLedger
from gatepass.services.workflow_service import GatePassWorkflowService


def get_workflow_backend(role: ViewRole, config: Optional[Settings] = None) -> WorkflowBackendClient:
    """Get a workflow backend client routed for ``role``."""
    config = config or default_settings
    if not config.workflow_api_url:
        raise ConfigurationError("WORKFLOW_API_URL is not set")
    return WorkflowBackendClient(
        config.workflow_api_url,
        role=role,
        token=config.workflow_api_token or None,
        timeout=config.http_timeout,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
    )


def get_identity_directory(config: Optional[Settings] = None) -> IdentityDirectoryClient:
    config = config or default_settings
    return IdentityDirectoryClient(
        config.directory_api_url,
        token=config.directory_api_token or None,
        timeout=config.http_timeout,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
    )


def get_erp_client(config: Optional[Settings] = None) -> Optional[ErpClient]:
    """Get the ERP client, or None when the ERP fallback is switched off."""
    config = config or default_settings
    if not config.erp_fallback_enabled:
        return None
    return ErpClient(
        config.erp_api_url,
        username=config.erp_username or None,
        password=config.erp_password or None,
        timeout=config.http_timeout,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
    )


def get_enrichment_pipeline(config: Optional[Settings] = None) -> EnrichmentPipeline:
    """Get an enrichment pipeline with a fresh identity cache.

    Args:
        config: Settings to use instead of the process-wide ones

    Returns:
        EnrichmentPipeline: Pipeline backed by the directory and, when
        enabled, the ERP fallback
    """
    config = config or default_settings
    directory = get_identity_directory(config)
    resolver = IdentityResolver(directory.lookup, lookup_timeout=config.identity_lookup_timeout)

    erp = get_erp_client(config)
    return EnrichmentPipeline(
        resolver,
        erp_lookup=erp.lookup_employee if erp else None,
        erp_timeout=config.identity_lookup_timeout,
    )


def build_workflow_service(role: ViewRole, config: Optional[Settings] = None) -> GatePassWorkflowService:
    """Build the workflow coordinator for one signed-in role.

    Args:
        role: Role the session acts as
        config: Settings to use instead of the process-wide ones

    Returns:
        GatePassWorkflowService: Coordinator with its own identity cache
    """
    config = config or default_settings
    backend = get_workflow_backend(role, config)
    return GatePassWorkflowService(
        backend,
        get_enrichment_pipeline(config),
        ledger=ReturnableItemsLedger(backend.with_role(ViewRole.RECEIVER)),
    )
