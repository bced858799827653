from prometheus_fastapi_instrumentator import Instrumentator

from app.core.config import settings
from app.core.logging import configure_logging
from . import create_app

configure_logging(settings.LOG_LEVEL)
app = create_app(settings)
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, include_in_schema=False)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
