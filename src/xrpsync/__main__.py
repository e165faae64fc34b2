import uvicorn

from xrpsync.config import cfg


def main():
    uvicorn.run("xrpsync.app:app", host=cfg["http"]["host"], port=cfg["http"]["port"], lifespan="on")


if __name__ == "__main__":
    main()
