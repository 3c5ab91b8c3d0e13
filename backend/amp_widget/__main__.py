import uvicorn

from .settings import settings

if __name__ == "__main__":
    uvicorn.run("amp_widget.main:app", host=settings.host, port=int(settings.port))
