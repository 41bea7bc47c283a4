import uvicorn

from src.insurance_api.config import settings


# PUBLIC_INTERFACE
def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    uvicorn.run("src.insurance_api.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
