"""Nox sessions for multi-environment testing and quality assurance."""

import nox


@nox.session(python=["3.12", "3.13"])
def tests(session: nox.Session) -> None:
    """Run test suite with coverage reporting.

    Args:
        session: The nox session object.
    """
    session.run("uv", "sync", external=True)
    session.run(
        "pytest",
        "--cov=diskscope",
        "--cov-report=term-missing:skip-covered",
        "--cov-report=html",
        "--cov-fail-under=80",
    )


@nox.session(python=["3.12"])
def unit(session: nox.Session) -> None:
    """Run only the fast unit tests.

    Args:
        session: The nox session object.
    """
    session.run("uv", "sync", external=True)
    session.run("pytest", "-m", "unit")


@nox.session(python=["3.12"])
def lint(session: nox.Session) -> None:
    """Run ruff linting and formatting checks.

    Args:
        session: The nox session object.
    """
    session.run("uv", "sync", external=True)
    session.run("ruff", "check", ".")
    session.run("ruff", "format", "--check", ".")


@nox.session(python=["3.12"])
def typecheck(session: nox.Session) -> None:
    """Run basedpyright type checking.

    Args:
        session: The nox session object.
    """
    session.run("uv", "sync", external=True)
    session.run("uvx", "basedpyright@latest", external=True)


@nox.session(python=["3.12"])
def format(session: nox.Session) -> None:
    """Auto-format code with ruff.

    Args:
        session: The nox session object.
    """
    session.run("uv", "sync", external=True)
    session.run("ruff", "check", ".", "--fix")
    session.run("ruff", "format", ".")
