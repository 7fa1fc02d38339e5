"""Smart intake service entry point."""

import argparse
import logging

import uvicorn

from .api import create_app
from .config import IntakeConfig
from .model_client import ChatCompletionClient
from .orchestrator import IntakeOrchestrator

logger = logging.getLogger(__name__)


def build_app(config: IntakeConfig, timezone: str = "UTC"):
    """Wire the orchestrator and its collaborators into an app."""
    model = ChatCompletionClient(config.model)
    orchestrator = IntakeOrchestrator(model, config=config, timezone=timezone)
    return create_app(orchestrator, config)


def cli() -> None:
    """Command-line interface entry point."""
    parser = argparse.ArgumentParser(
        description="Smart Intake - AI-assisted intake and clarification service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variables:
  SMART_INTAKE_API_KEY  API key for the model endpoint (name configurable
                        with model.api_key_env in the config file).
""",
    )

    parser.add_argument(
        "--config",
        default=".smart_intake/config.yaml",
        help="Path to config file (default: .smart_intake/config.yaml)",
    )

    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface to bind (default: 127.0.0.1)",
    )

    parser.add_argument(
        "--port",
        type=int,
        help="API server port (default: api.port from config, else 8080)",
    )

    parser.add_argument(
        "--timezone",
        default="UTC",
        help="Timezone name passed to the model with each input (default: UTC)",
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = IntakeConfig.load(args.config)
    if not config.model.api_key():
        logger.warning(f"{config.model.api_key_env} is not set; model calls may be rejected")

    port = args.port or config.api_port
    logger.info(f"Starting smart intake on {args.host}:{port} (model {config.model.model})")

    uvicorn.run(build_app(config, args.timezone), host=args.host, port=port, log_level="warning")


if __name__ == "__main__":
    cli()
