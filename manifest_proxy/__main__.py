import uvicorn

from manifest_proxy.config import settings

if __name__ == "__main__":
    uvicorn.run("manifest_proxy.main:app", host=settings.host, port=settings.port)
