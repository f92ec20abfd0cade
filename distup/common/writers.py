# Copyright 2023-2025. WebPros International GmbH. All rights reserved.
import codecs
import sys
import typing


class Writer():
    def __init__(self):
        pass

    def __enter__(self):
        return self

    def write(self, message: str):
        raise NotImplementedError("Not implemented writer call")

    def __exit__(self, *args):
        pass


class StdoutWriter(Writer):
    stream: typing.Optional[typing.TextIO]

    def __init__(self, stream: typing.Optional[typing.TextIO] = None):
        super().__init__()
        self.stream = stream

    @property
    def out(self) -> typing.TextIO:
        # Resolved lazily so redirected sys.stdout is respected
        return self.stream if self.stream is not None else sys.stdout

    def write(self, message: str) -> None:
        encoding = getattr(self.out, "encoding", None) or "utf-8"
        recoded_message = codecs.encode(message, encoding, errors='backslashreplace').decode(encoding)
        self.out.write(recoded_message)
        self.out.flush()


class BufferWriter(Writer):
    """Keeps written messages in memory, used for non-interactive runs and tests."""
    messages: typing.List[str]

    def __init__(self):
        super().__init__()
        self.messages = []

    def write(self, message: str) -> None:
        self.messages.append(message)

    def getvalue(self) -> str:
        return "".join(self.messages)
