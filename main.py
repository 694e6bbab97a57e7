from dialogpro.logging_config import setup_logging
from dialogpro.routes import create_app
from dialogpro.settings import Settings


settings = Settings()

# Configure logging once for the whole process.
setup_logging(settings)

# FastAPI application instance for uvicorn.
app = create_app(settings)


def run() -> None:
    import uvicorn

    # Logging is configured by dialogpro.logging_config, not uvicorn.
    uvicorn.run("main:app", host="0.0.0.0", port=8000, log_config=None)


if __name__ == "__main__":
    run()
