import uvicorn
from dotenv import load_dotenv
import os
from pathlib import Path
import logging

# Configure logging before any application imports to ensure visibility
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s RUN_DEV.PY - [%(levelname)s] - %(message)s'
)
logger = logging.getLogger("run_dev_script")

TRUTHY = ["true", "1", "yes", "on", "t"]

if __name__ == "__main__":
    project_root = Path(__file__).parent.resolve()
    dotenv_path_explicit = project_root / ".env"

    logger.info(f"Current working directory: {os.getcwd()}")
    logger.info(f"Expected .env path for load_dotenv: {dotenv_path_explicit}")

    if dotenv_path_explicit.exists():
        # Override existing OS environment variables with .env values
        load_dotenv(dotenv_path=dotenv_path_explicit, override=True)
        logger.info(f".env file loaded from {dotenv_path_explicit}")
    else:
        logger.warning(f".env file NOT FOUND at: {dotenv_path_explicit}. "
                       "Will rely on OS environment variables or pydantic-settings defaults.")

    # Log key environment variables for verification, secrets masked
    logger.info(f"GOOGLE_CLIENT_ID: {'********' if os.getenv('GOOGLE_CLIENT_ID') else 'None'}")
    logger.info(f"GOOGLE_CLIENT_SECRET: {'********' if os.getenv('GOOGLE_CLIENT_SECRET') else 'None'}")
    logger.info(f"REDIRECT_URI: {os.getenv('REDIRECT_URI')}")
    logger.info(f"CREDENTIAL_MODE: {os.getenv('CREDENTIAL_MODE')}")
    logger.info(f"CREDENTIAL_STORE_BACKEND: {os.getenv('CREDENTIAL_STORE_BACKEND')}")
    logger.info(f"DEBUG_MODE: {os.getenv('DEBUG_MODE')}")

    host = os.getenv("DEV_SERVER_HOST", "127.0.0.1")
    port = int(os.getenv("DEV_SERVER_PORT", os.getenv("PORT", "3000")))
    uvicorn_log_level = os.getenv("DEV_SERVER_LOG_LEVEL", "info").lower()

    debug_mode_env_val = os.getenv("DEBUG_MODE", "False").lower()
    debug_mode_bool_for_reload = debug_mode_env_val in TRUTHY
    reload_env_val = os.getenv("DEV_SERVER_RELOAD", str(debug_mode_bool_for_reload)).lower()
    reload_bool = reload_env_val in TRUTHY

    logger.info(f"Starting Uvicorn server on {host}:{port} (log level: {uvicorn_log_level}, reload: {reload_bool})")
    logger.info("App factory: gsc_mcp.main:create_app")

    uvicorn.run(
        "gsc_mcp.main:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=uvicorn_log_level,
        reload=reload_bool
    )
