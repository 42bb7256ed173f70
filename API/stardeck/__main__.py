import uvicorn

from stardeck.core.config import settings

if __name__ == "__main__":
    uvicorn.run("stardeck.main:app", host=settings.HOST, port=settings.PORT)
