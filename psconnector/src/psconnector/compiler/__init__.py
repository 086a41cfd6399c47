"""Descriptor compilation."""

from .descriptor import CompilationResult, CompileOptions, compile_descriptor
from .render import render_descriptor

__all__ = ["CompilationResult", "CompileOptions", "compile_descriptor", "render_descriptor"]
