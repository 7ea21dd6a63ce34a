"""Model-based test generation for ByteVM."""

from .fuzzer import (
    ExecutionResult, Success, Faulted, Timeout, Crash, FuzzCase,
    FuzzingStatistics,
    execute_with_engine,
    run_fuzzer,
)

from .expression import (
    Expr, Const, Add, Sub, Mul, Div, Mod,
    UINT8_MAX,
    compile_expr_to_instructions,
    compile_expr,
    evaluate_expr,
    random_expr,
)
