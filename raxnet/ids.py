"""ID generation utilities."""

from nanoid import generate

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
ID_LENGTH = 12


def gen_id(prefix: str) -> str:
    return f"{prefix}{generate(ALPHABET, ID_LENGTH)}"


def user_id() -> str:
    return gen_id("us_")


def task_id() -> str:
    return gen_id("tk_")


def task_work_id() -> str:
    return gen_id("tw_")


def transaction_id() -> str:
    return gen_id("tx_")


def coin_package_id() -> str:
    return gen_id("cp_")
