# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing
from abc import ABC, abstractmethod

from . import log, writers


class InvalidChoice(ValueError):
    pass


class ConfirmationPort(ABC):
    """Interaction points where the user has to agree or to choose."""

    @abstractmethod
    def confirm(self, question: str, default: bool = False) -> bool:
        pass

    @abstractmethod
    def choose(self, question: str, options: typing.List[typing.Tuple[str, str]]) -> typing.Optional[str]:
        """
        Ask to choose one of (key, description) options. Returns the chosen key,
        None if the user decided to quit, raises InvalidChoice on any other answer.
        """
        pass

    @abstractmethod
    def confirm_phrase(self, question: str, phrase: str) -> bool:
        """Ask to type the phrase, used before irreversible operations."""
        pass


class TerminalConfirmation(ConfirmationPort):
    writer: writers.Writer
    input_func: typing.Callable[[str], str]

    def __init__(
        self,
        writer: typing.Optional[writers.Writer] = None,
        input_func: typing.Callable[[str], str] = input,
    ):
        self.writer = writer if writer is not None else writers.StdoutWriter()
        self.input_func = input_func

    def _ask(self, prompt: str) -> typing.Optional[str]:
        try:
            answer = self.input_func(prompt)
        except EOFError:
            log.debug(f"No answer for {prompt!r}, input is closed")
            return None
        log.debug(f"Answer for {prompt!r}: {answer!r}")
        return answer.strip()

    def confirm(self, question: str, default: bool = False) -> bool:
        suffix = "[Y/n]" if default else "[y/N]"
        answer = self._ask(f"{question} {suffix}: ")
        if not answer:
            return default
        return answer.lower() in ("y", "yes")

    def choose(self, question: str, options: typing.List[typing.Tuple[str, str]]) -> typing.Optional[str]:
        self.writer.write(f"{question}\n")
        for number, (key, description) in enumerate(options, start=1):
            self.writer.write(f"  {number}) {key:<15} {description}\n")
        self.writer.write("  q) Quit\n")

        answer = self._ask(f"Enter choice [1-{len(options)}]: ")
        if answer is None or answer.lower() == "q":
            return None

        keys = [key for key, _ in options]
        if answer in keys:
            return answer
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return keys[int(answer) - 1]
        raise InvalidChoice(f"Invalid choice {answer!r}")

    def confirm_phrase(self, question: str, phrase: str) -> bool:
        answer = self._ask(f"{question} Type '{phrase}' to continue: ")
        return answer == phrase


class AutoConfirmation(ConfirmationPort):
    """Answers every question the same way, for --yes and for tests."""
    answer: bool
    choice: typing.Optional[str]
    questions: typing.List[str]

    def __init__(self, answer: bool = True, choice: typing.Optional[str] = None):
        self.answer = answer
        self.choice = choice
        self.questions = []

    def confirm(self, question: str, default: bool = False) -> bool:
        self.questions.append(question)
        log.info(f"{question} Automatically answered {'yes' if self.answer else 'no'}")
        return self.answer

    def choose(self, question: str, options: typing.List[typing.Tuple[str, str]]) -> typing.Optional[str]:
        self.questions.append(question)
        if self.choice is not None and self.choice not in [key for key, _ in options]:
            raise InvalidChoice(f"Invalid choice {self.choice!r}")
        return self.choice

    def confirm_phrase(self, question: str, phrase: str) -> bool:
        self.questions.append(question)
        return self.answer
