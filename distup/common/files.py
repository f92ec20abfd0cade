# Copyright 2023-2025. WebPros International GmbH. All rights reserved.
import fnmatch
import json
import os
import re
import shutil
import typing

from . import log


PathType = typing.Union[os.PathLike, str]


def rewrite_file(filename: str, content: str) -> None:
    """Replace the file content so that readers see either the old or the new one."""
    log.debug(f"Going to rewrite {filename!r}")
    with open(filename + ".next", "w") as dst:
        dst.write(content)

    if os.path.exists(filename):
        shutil.copymode(filename, filename + ".next")
    shutil.move(filename + ".next", filename)


def rewrite_json_file(filename: str, jobj: typing.Union[dict, typing.List]) -> None:
    log.debug("Going to write json '{file}' with new data".format(file=filename))

    with open(filename + ".next", "w") as dst:
        dst.write(json.dumps(jobj, indent=4))

    shutil.move(filename + ".next", filename)


def read_json_file(filename: str, default: typing.Any = None) -> typing.Any:
    if not os.path.exists(filename):
        return default
    with open(filename, "r") as src:
        return json.load(src)


def copy_atomically(source: str, destination: str) -> None:
    """
    Copy a file or a directory tree, the destination appears only when the copy is complete.
    """
    next_path = destination + ".next"
    if os.path.isdir(next_path) and not os.path.islink(next_path):
        shutil.rmtree(next_path)
    elif os.path.lexists(next_path):
        os.remove(next_path)

    if os.path.isdir(source) and not os.path.islink(source):
        shutil.copytree(source, next_path, symlinks=True)
    else:
        shutil.copy2(source, next_path, follow_symlinks=False)

    os.rename(next_path, destination)


def replace_path(source: str, destination: str) -> None:
    """
    Put a copy of source in place of destination. Directories are swapped as a whole,
    the previous content is removed only after the copy is in place.
    """
    if os.path.isdir(source) and not os.path.islink(source):
        next_path = destination + ".next"
        aside_path = destination + ".prev"
        if os.path.isdir(next_path):
            shutil.rmtree(next_path)
        shutil.copytree(source, next_path, symlinks=True)
        if os.path.lexists(destination):
            os.rename(destination, aside_path)
        os.rename(next_path, destination)
        if os.path.lexists(aside_path):
            shutil.rmtree(aside_path)
    else:
        if os.path.isdir(destination) and not os.path.islink(destination):
            shutil.rmtree(destination)
        copy_atomically(source, destination)


def remove_path(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


def get_last_lines(filename: PathType, n: int) -> typing.List[str]:
    with open(filename) as f:
        return f.readlines()[-n:]


def __get_files_recursive(path: str) -> typing.Iterator[str]:
    for root, _, files in os.walk(path):
        for file in files:
            yield os.path.relpath(os.path.join(root, file), path)


def find_files_case_insensitive(path: str, regexps_strings: typing.Union[typing.List, str], recursive: bool = False) -> typing.List[str]:
    if not isinstance(regexps_strings, list) and not isinstance(regexps_strings, str):
        raise TypeError("find_files_case_insensitive argument regexps_strings must be a list")
    # But string is a common mistake and we can handle it simply
    if isinstance(regexps_strings, str):
        regexps_strings = [regexps_strings]

    if not os.path.exists(path) or not os.path.isdir(path):
        return []

    result = []
    regexps = [re.compile(fnmatch.translate(r), re.IGNORECASE) for r in regexps_strings]
    files_list = __get_files_recursive(path) if recursive else os.listdir(path)

    for file in sorted(files_list):
        for regexp in regexps:
            if regexp.match(os.path.basename(file)):
                result.append(os.path.join(path, file))
                break

    return result


def cnf_get_section_variable(filename: str, section: str, variable: str) -> typing.Optional[str]:
    with open(filename, "r") as original:
        in_section = False
        for line in original.readlines():
            sec_match = re.match(r"\s*\[\s*(?P<sec_name>\S+)\s*\]", line)
            if sec_match:
                in_section = sec_match["sec_name"] == section
                continue
            if in_section:
                var_match = re.match(f"\\s*{variable}\\s*=\\s*(?P<value>.*)", line)
                if var_match:
                    return var_match["value"].strip()
    return None


def cnf_set_section_variable(filename: str, section: str, variable: str, value: str) -> None:
    if not os.path.exists(filename):
        return

    with open(filename, "r") as original, open(filename + ".next", "w") as dst:
        section_found = in_section = False
        variable_found = False
        for line in original.readlines():
            sec_match = re.match(r"\s*\[\s*(?P<sec_name>\S+)\s*\]", line)
            if sec_match:
                if in_section:
                    in_section = False
                    if not variable_found:
                        dst.write(f"{variable}={value}\n")
                        variable_found = True
                else:
                    in_section = sec_match["sec_name"] == section
                    section_found = section_found or in_section

            if in_section and re.match(f"\\s*{variable}\\s*=", line):
                line = f"{variable}={value}\n"
                variable_found = True

            dst.write(line)

        if not section_found:
            dst.write(f"\n[{section}]\n{variable}={value}\n")
        elif in_section and not variable_found:
            dst.write(f"{variable}={value}\n")

    shutil.move(filename + ".next", filename)
