import uvicorn

from .settings import HOST, PORT


def main() -> None:
    uvicorn.run("coordinator.main:app", host=HOST, port=PORT)
