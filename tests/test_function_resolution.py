import unittest
from textwrap import dedent

from psrename.ast import Command, FunctionDefinition
from psrename.errors import AmbiguousDeclaration, FunctionDefinitionNotFound
from psrename.model import resolve_function_call
from psrename.model.function_resolver import exclusive_branches
from tests.dsl import FakeScript


class TestFunctionResolution(unittest.TestCase):
    def checkResolution(self, script: FakeScript, call: int, definition: int):
        resolved = resolve_function_call(script.tree, script.node_at(call, Command))

        self.assertIs(
            resolved,
            script.node_at(definition, FunctionDefinition),
            f"\n{script.highlight([script.at(call), resolved.extent])}",
        )

    def test_single_definition(self):
        script = FakeScript(
            dedent(
                """\
                function Get-Greeting { 'hi' }
                ^1
                function Wrapper { get-greeting }
                                   ^2
                """
            )
        )

        self.checkResolution(script, 2, 1)

    def test_closest_preceding_definition(self):
        script = FakeScript(
            dedent(
                """\
                function Say { 'a' }
                ^1
                Say
                ^2
                function Say { 'b' }
                ^3
                Say
                ^4
                """
            )
        )

        self.checkResolution(script, 2, 1)
        self.checkResolution(script, 4, 3)

    def test_nearest_enclosing_scope_wins(self):
        script = FakeScript(
            dedent(
                """\
                function Inner { 'global' }
                ^1
                function Outer {
                    function Inner { 'local' }
                    ^2
                    Inner
                    ^3
                }
                Inner
                ^4
                """
            )
        )

        self.checkResolution(script, 3, 2)
        self.checkResolution(script, 4, 1)

    def test_recursion(self):
        script = FakeScript(
            dedent(
                """\
                function Countdown($n) {
                ^1
                    if ($n -gt 0) { Countdown ($n - 1) }
                                    ^2
                }
                """
            )
        )

        self.checkResolution(script, 2, 1)

    def test_exclusive_branches(self):
        script = FakeScript(
            dedent(
                """\
                if ($flag) {
                    function Pick { 1 }
                    ^1
                } else {
                    function Pick { 2 }
                    ^2
                }
                Pick
                ^3
                """
            )
        )

        first = script.node_at(1, FunctionDefinition)
        second = script.node_at(2, FunctionDefinition)
        self.assertTrue(exclusive_branches(first, second))
        self.assertTrue(exclusive_branches(second, first))
        self.assertFalse(exclusive_branches(first, script.node_at(3, Command)))

        with self.assertRaises(AmbiguousDeclaration) as cm:
            resolve_function_call(script.tree, script.node_at(3, Command))

        self.assertEqual(len(cm.exception.candidates), 2)

    def test_not_found(self):
        script = FakeScript(
            dedent(
                """\
                Get-ChildItem -Path .
                ^1
                Later
                ^2
                function Later { }
                """
            )
        )

        for mark in [1, 2]:
            with self.assertRaises(FunctionDefinitionNotFound):
                resolve_function_call(script.tree, script.node_at(mark, Command))
