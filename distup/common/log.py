# Copyright 2023-2025. WebPros International GmbH. All rights reserved.
import locale
import logging
import os

import typing


class logger():
    files_logger: logging.Logger = logging.getLogger("distup_files")

    is_streams_enabled: bool = False
    streams_logger: logging.Logger = logging.getLogger("distup_streams")
    encoding: str = locale.getpreferredencoding()

    @staticmethod
    def _re_decode_message(message: str) -> str:
        return message.encode(logger.encoding, errors='backslashreplace').decode(logger.encoding, errors='backslashreplace')

    @staticmethod
    def _reset_logger(log: logging.Logger, loglevel: int = logging.INFO) -> None:
        for handler in list(log.handlers):
            log.removeHandler(handler)
            handler.close()
        for filter in list(log.filters):
            log.removeFilter(filter)
        log.setLevel(loglevel)
        # Keep our records away from whatever the root logger is configured with
        log.propagate = False
        log.addHandler(logging.NullHandler())

    @staticmethod
    def init_logger(logfiles: typing.List[str], streams: typing.List[typing.Any],
                    loglevel: int = logging.INFO, encoding: typing.Optional[str] = None) -> None:
        """ Initializes loggers. Can be called multiple times with different arguments. """
        if encoding is None:
            logger.encoding = locale.getpreferredencoding()
        else:
            logger.encoding = encoding

        logger._reset_logger(logger.files_logger, loglevel)
        logger._reset_logger(logger.streams_logger, loglevel)
        logger.is_streams_enabled = False

        formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

        file_handlers: typing.List[logging.Handler] = []
        for logfile in logfiles:
            logdir = os.path.dirname(logfile)
            if logdir and not os.path.isdir(logdir):
                os.makedirs(logdir, 0o750, exist_ok=True)
            file_handlers.append(logging.FileHandler(logfile))

        stream_handlers: typing.List[logging.Handler] = []
        for stream in streams:
            stream_handlers.append(logging.StreamHandler(stream))
        if len(stream_handlers):
            logger.is_streams_enabled = True

        for handler in file_handlers + stream_handlers:
            handler.setFormatter(formatter)

        for handler in file_handlers:
            logger.files_logger.addHandler(handler)

        for handler in stream_handlers:
            logger.streams_logger.addHandler(handler)

    @staticmethod
    def log(level: int, msg: str, to_file: bool = True, to_stream: bool = True) -> None:
        msg = logger._re_decode_message(msg)
        if to_file:
            logger.files_logger.log(level, msg)

        if to_stream and logger.is_streams_enabled:
            logger.streams_logger.log(level, msg)

    @staticmethod
    def get_logfiles() -> typing.List[str]:
        return [h.baseFilename for h in logger.files_logger.handlers if isinstance(h, logging.FileHandler)]


def init_logger(logfiles: typing.List[str], streams: typing.List[typing.Any],
                loglevel: int = logging.INFO, encoding: typing.Optional[str] = None) -> None:
    logger.init_logger(logfiles, streams, loglevel, encoding=encoding)


def get_logfiles() -> typing.List[str]:
    return logger.get_logfiles()


def debug(msg: str, to_file: bool = True, to_stream: bool = True) -> None:
    logger.log(logging.DEBUG, msg, to_file, to_stream)


def info(msg: str, to_file: bool = True, to_stream: bool = True) -> None:
    logger.log(logging.INFO, msg, to_file, to_stream)


def warn(msg: str, to_file: bool = True, to_stream: bool = True) -> None:
    logger.log(logging.WARNING, msg, to_file, to_stream)


def err(msg: str, to_file: bool = True, to_stream: bool = True) -> None:
    logger.log(logging.ERROR, msg, to_file, to_stream)


logger.files_logger.addHandler(logging.NullHandler())
logger.streams_logger.addHandler(logging.NullHandler())
