"""argsh -- compile comment-annotated bash scripts into argument parsers.

A script declares its command-line interface in header comments
(``# @describe``, ``# @cmd``, ``# @option``, ``# @flag``, ``# @arg`` ...).
argsh reads those annotations, builds and validates a command tree, and
emits bash code that parses, validates and dispatches the script's
arguments at run time. The same tree answers shell-completion requests.

Typical workflow::

    # at the end of an annotated script
    eval "$(argsh compile "$0")"

    argsh build script.sh -o dist/script   # inline the generated parser
    argsh check script.sh                  # report diagnostics only

Modules:
    app: Typer application and CLI entry point.
    compiler: The lex -> build -> validate -> generate pipeline.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
