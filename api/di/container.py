"""Centralized dependency injection container."""
from dependency_injector import containers, providers

from infra.resources import DatabaseResource, HttpClientResource
from infra.scheduler import PurgeScheduler
from llm.adapter import CompletionAdapter
from llm.providers import (
    EchoCompletionProvider,
    MockCompletionProvider,
    OllamaCompletionProvider,
)


class InfrastructureContainer(containers.DeclarativeContainer):
    """Infrastructure layer dependencies."""

    config = providers.Configuration()

    # Database
    database = providers.Resource(
        DatabaseResource,
        database_url=config.DATABASE.DATABASE_URL,
    )

    # Upstream HTTP client
    http_client = providers.Resource(
        HttpClientResource,
        timeout_seconds=config.LLM.LLM_TIMEOUT_SECONDS,
    )

    # Delayed purges
    purge_scheduler = providers.Singleton(PurgeScheduler)


class ServiceContainer(containers.DeclarativeContainer):
    """Application services - depends on infrastructure."""

    config = providers.Configuration()
    infrastructure = providers.DependenciesContainer()

    # Completion provider, chosen once from configuration
    completion_provider = providers.Selector(
        config.LLM.LLM_PROVIDER,
        echo=providers.Singleton(EchoCompletionProvider),
        mock=providers.Singleton(MockCompletionProvider, url=config.LLM.LLM_URL),
        ollama=providers.Singleton(
            OllamaCompletionProvider,
            base_url=config.LLM.OLLAMA_URL,
            model=config.LLM.OLLAMA_MODEL,
        ),
    )

    completion_adapter = providers.Singleton(
        CompletionAdapter,
        provider=completion_provider,
        http=infrastructure.http_client,
        max_attempts=config.LLM.LLM_MAX_ATTEMPTS,
        backoff_base_seconds=config.LLM.LLM_BACKOFF_BASE_SECONDS,
        timeout_seconds=config.LLM.LLM_TIMEOUT_SECONDS,
    )

    # Services
    conversation_service = providers.Singleton(
        "api.features.conversation.service.ConversationService",
        database=infrastructure.database,
        scheduler=infrastructure.purge_scheduler,
        purge_delay_seconds=config.LIFECYCLE.PURGE_DELAY_SECONDS,
    )

    message_service = providers.Singleton(
        "api.features.conversation.message_service.MessageService",
        page_size=config.LIFECYCLE.PAGE_SIZE,
        max_page_size=config.LIFECYCLE.MAX_PAGE_SIZE,
    )

    turn_orchestrator = providers.Factory(
        "api.features.conversation.orchestrator.TurnOrchestrator",
        conversation_service=conversation_service,
        message_service=message_service,
        completion_adapter=completion_adapter,
    )


class ControllerContainer(containers.DeclarativeContainer):
    """Controller-specific dependencies."""

    services = providers.DependenciesContainer()

    # Controllers
    conversation_controller = providers.Factory(
        "api.features.conversation.controller.ConversationController",
        conversation_service=services.conversation_service,
        message_service=services.message_service,
        orchestrator=services.turn_orchestrator,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Main application container composing all sub-containers."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "api.shared.db",
            "api.features.conversation.router",
            "api.features.health.router",
        ]
    )

    config = providers.Configuration()

    infrastructure = providers.Container(InfrastructureContainer, config=config)
    services = providers.Container(
        ServiceContainer, config=config, infrastructure=infrastructure
    )
    controllers = providers.Container(ControllerContainer, services=services)
