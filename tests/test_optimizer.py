import math

from ouro.ast_nodes import Binary, NumberLit, StringLit
from ouro.facade import CompilerFacade, PipelineOptions
from ouro.optimizer import ConstantFolder
from ouro.parser import parse_ouro


def fold(code, opt_level=1):
    folder = ConstantFolder(opt_level)
    program = folder.optimize(parse_ouro(code))
    return program, folder


def test_nested_arithmetic_folds_bottom_up():
    program, folder = fold("let x = 2 + 3 * 4;")
    init = program.items[0].init

    assert isinstance(init, NumberLit)
    assert init.value == 14
    assert folder.folded == 2


def test_folded_literal_keeps_position():
    program, _ = fold("let x = 2 + 3;")
    init = program.items[0].init

    assert (init.line, init.column) == (1, 9)


def test_integer_division_results():
    program, _ = fold("let a = 8 / 2; let b = 7 / 2; let c = -7 % 3;")
    a, b, c = (item.init for item in program.items)

    assert a.value == 4 and a.is_integer
    assert b.value == 3.5 and not b.is_integer
    assert c.value == -1


def test_division_by_zero_is_left_for_runtime():
    program, folder = fold("let z = 1 / 0; let m = 4 % 0;")

    assert all(isinstance(item.init, Binary) for item in program.items)
    assert folder.folded == 0


def test_unary_minus_folds():
    program, folder = fold("let n = -(2 + 3);")

    assert program.items[0].init.value == -5
    assert folder.folded == 2


def test_float_arithmetic_folds():
    program, _ = fold("let f = 1.5 * 2;")

    assert math.isclose(program.items[0].init.value, 3.0)


def test_non_literal_operands_are_kept():
    program, folder = fold('let s = a + 1; let t = "a" + "b"; let u = 1 < 2;')
    s, t, u = (item.init for item in program.items)

    assert isinstance(s, Binary)
    assert isinstance(t, Binary) and isinstance(t.left, StringLit)
    assert isinstance(u, Binary)
    assert folder.folded == 0


def test_folding_reaches_function_bodies_and_arguments():
    program, folder = fold("fn f() { return g(1 + 1, [2 * 2]); }")
    call = program.items[0].body.stmts[0].expr

    assert call.args[0].value == 2
    assert call.args[1].elements[0].value == 4
    assert folder.folded == 2


def test_level_zero_disables_folding():
    program, folder = fold("let x = 2 + 3;", opt_level=0)

    assert isinstance(program.items[0].init, Binary)
    assert folder.folded == 0


def test_facade_folds_only_when_enabled():
    facade = CompilerFacade()

    assert facade.compile("let x = 1 + 2;").folded == 1
    assert facade.compile("let x = 1 + 2;", options=PipelineOptions(optimize=False)).folded == 0


def test_facade_skips_folding_when_analysis_fails():
    result = CompilerFacade().compile("let x = 1 + 2; let y = missing;")

    assert result.semantic_errors == 1
    assert result.folded == 0
