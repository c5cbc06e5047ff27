import logging

# Application logger shared by routers and startup code
logger = logging.getLogger("govairn-logger")
logger.setLevel(logging.INFO)
logger.propagate = False  # uvicorn installs its own root handler

if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s - [%(levelname)s] - %(name)s - %(funcName)s() - %(message)s"
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
