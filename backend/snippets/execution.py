"""
Code Execution Proxy
====================

Forwards code to a Piston instance (https://github.com/engineer-man/piston)
and normalizes the answer to {output, error}. Nothing runs locally.

FLOW:
-----
1. Map the user's language label to a Piston language (case-insensitive).
   Unknown label -> UnsupportedLanguageError, no network call.
2. POST {PISTON_API_URL}/execute with compile/run timeouts.
3. Normalize:
   - compile step exited non-zero     -> error = compile stderr/output
   - run step exited non-zero + stderr -> error = stderr
   - run step killed by a signal       -> error names the signal
   - otherwise                         -> output = stdout
   At most one of output / error is set.

Transport failures (connection errors, timeouts, 4xx/5xx, bad JSON) raise
ExecutionServiceError; they never escape as requests exceptions.
"""

import logging
import time
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from django.conf import settings

from .exceptions import ExecutionServiceError, UnsupportedLanguageError, ValidationError

logger = logging.getLogger(__name__)


# Language labels accepted from clients -> Piston language identifiers
PISTON_LANGUAGES = {
    'javascript': 'javascript',
    'js': 'javascript',
    'python': 'python',
    'python3': 'python',
    'java': 'java',
    'c': 'c',
    'cpp': 'cpp',
    'c++': 'cpp',
    'csharp': 'csharp',
    'c#': 'csharp',
    'go': 'go',
    'ruby': 'ruby',
    'swift': 'swift',
    'kotlin': 'kotlin',
    'rust': 'rust',
    'php': 'php',
    'typescript': 'typescript',
    'ts': 'typescript',
    'r': 'r',
    'perl': 'perl',
    'scala': 'scala',
    'bash': 'bash',
    'shell': 'bash',
    'lua': 'lua',
    'haskell': 'haskell',
    'elixir': 'elixir',
    'crystal': 'crystal',
}

# Java and Kotlin compilers care about the file name
FILE_NAMES = {
    'javascript': 'code.js',
    'python': 'code.py',
    'java': 'Main.java',
    'c': 'code.c',
    'cpp': 'code.cpp',
    'csharp': 'Code.cs',
    'go': 'code.go',
    'ruby': 'code.rb',
    'swift': 'code.swift',
    'kotlin': 'Code.kt',
    'rust': 'code.rs',
    'php': 'code.php',
    'typescript': 'code.ts',
    'r': 'code.r',
    'perl': 'code.pl',
    'scala': 'Code.scala',
    'bash': 'code.sh',
    'lua': 'code.lua',
    'haskell': 'code.hs',
    'elixir': 'code.ex',
    'crystal': 'code.cr',
}

NO_OUTPUT_MESSAGE = 'Code executed successfully (no output)'

_session: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    """Process-wide pooled session, created on first use."""
    global _session
    if _session is None:
        session = requests.Session()
        adapter = HTTPAdapter(pool_connections=10, pool_maxsize=20)
        session.mount('https://', adapter)
        session.mount('http://', adapter)
        _session = session
    return _session


def close_session() -> None:
    global _session
    if _session is not None:
        _session.close()
        _session = None


class ExecutionResult:
    """Normalized execution outcome. At most one of output / error is set."""
    def __init__(self, output: Optional[str], error: Optional[str], execution_time_ms: int = 0):
        self.output = output
        self.error = error
        self.execution_time_ms = execution_time_ms

    def as_dict(self) -> dict:
        return {
            'output': self.output,
            'error': self.error,
            'executionTime': f"{self.execution_time_ms}ms",
        }


def resolve_language(language) -> str:
    """Piston identifier for a user-supplied label, or UnsupportedLanguageError."""
    key = language.strip().lower() if isinstance(language, str) else ''
    piston_language = PISTON_LANGUAGES.get(key)
    if piston_language is None:
        raise UnsupportedLanguageError(f"Execution for {language} is not supported yet")
    return piston_language


def build_payload(code: str, piston_language: str, stdin: str = '') -> dict:
    return {
        'language': piston_language,
        'version': '*',  # latest installed runtime
        'files': [{
            'name': FILE_NAMES.get(piston_language, 'code.txt'),
            'content': code,
        }],
        'stdin': stdin or '',
        'args': [],
        'compile_timeout': settings.PISTON_COMPILE_TIMEOUT_MS,
        'run_timeout': settings.PISTON_RUN_TIMEOUT_MS,
        'compile_memory_limit': -1,
        'run_memory_limit': -1,
    }


def normalize_response(data: dict) -> ExecutionResult:
    """
    Turn a Piston /execute body into an ExecutionResult.

    A failed compile stage comes back without a `run` stage, so `compile`
    is checked before `run` is required.
    """
    if not isinstance(data, dict):
        raise ExecutionServiceError('Malformed response from execution service')

    compile_stage = data.get('compile')
    if isinstance(compile_stage, dict) and compile_stage.get('code') not in (0, None):
        return ExecutionResult(
            output=None,
            error=compile_stage.get('stderr') or compile_stage.get('output') or 'Compilation error'
        )

    if not isinstance(data.get('run'), dict):
        raise ExecutionServiceError(data.get('message') or 'Malformed response from execution service')

    run = data['run']
    exit_code = run.get('code')
    stderr = run.get('stderr') or ''

    if exit_code not in (0, None) and stderr:
        return ExecutionResult(output=None, error=stderr)

    if run.get('signal'):
        return ExecutionResult(
            output=None,
            error=stderr or f"Process terminated by signal {run['signal']} (time or memory limit exceeded?)"
        )

    return ExecutionResult(
        output=run.get('stdout') or run.get('output') or NO_OUTPUT_MESSAGE,
        error=None
    )


def execute(code: str, language: str, stdin: str = '', session: Optional[requests.Session] = None) -> ExecutionResult:
    """
    Run `code` on the external execution service.

    Raises:
    - ValidationError: empty code
    - UnsupportedLanguageError: language has no Piston mapping (no request made)
    - ExecutionServiceError: network failure, timeout, bad status or body
    """
    if not isinstance(code, str) or not code.strip():
        raise ValidationError('Code is required', {'code': ['This field may not be blank.']})
    piston_language = resolve_language(language)

    payload = build_payload(code, piston_language, stdin)
    http = session or _get_session()
    url = f"{settings.PISTON_API_URL}/execute"

    started = time.monotonic()
    try:
        response = http.post(url, json=payload, timeout=settings.PISTON_HTTP_TIMEOUT)
        response.raise_for_status()
        data = response.json()
    except requests.Timeout:
        logger.warning("Piston request timed out after %ss", settings.PISTON_HTTP_TIMEOUT)
        raise ExecutionServiceError('Failed to execute code: execution service timed out')
    except requests.RequestException as exc:
        logger.warning("Piston API error: %s", exc)
        raise ExecutionServiceError(f"Failed to execute code: {exc}")
    except ValueError:
        raise ExecutionServiceError('Failed to execute code: invalid response from execution service')

    result = normalize_response(data)
    result.execution_time_ms = int((time.monotonic() - started) * 1000)
    return result
