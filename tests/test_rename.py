import unittest
from textwrap import dedent

import lsprotocol.types as L

from psrename.ast import FunctionDefinition, Id
from psrename.errors import (
    AmbiguousShadowing,
    DeclarationNotFound,
    DotSourcingUnsupported,
    FunctionDefinitionNotFound,
    NoSymbolAtPosition,
)
from psrename.parsing import parse_script
from psrename.providers import (
    RenameKind,
    RenameProvider,
    apply_edits,
    prepare_rename,
    rename,
)
from tests.dsl import FakeScript


class TestRename(unittest.TestCase):
    def checkRename(
        self,
        script: FakeScript,
        mark: int,
        new_name: str,
        expected: str,
    ):
        edits = rename(script.tree, *script.start_of(mark), new_name)
        self.assertMultiLineEqual(script.edited(edits), expected.rstrip("\n"))

    def test_greet(self):
        script = FakeScript("function Greet($name) { Write-Output $name }")
        edits = rename(script.tree, 1, 16, "person")

        self.assertEqual(
            [(edit.range, edit.new_text) for edit in edits],
            [
                (L.Range(L.Position(0, 15), L.Position(0, 20)), "$person"),
                (L.Range(L.Position(0, 37), L.Position(0, 42)), "$person"),
            ],
        )

    def test_greet_with_call_site(self):
        script = FakeScript(
            dedent(
                """\
                function Greet($name) { Write-Output "Hello $name" }
                               ^1
                Greet -name World
                      ^2
                Greet -Name:Everyone
                """
            )
        )

        expected = dedent(
            """\
            function Greet($person) { Write-Output "Hello $person" }
            Greet -person World
            Greet -person:Everyone
            """
        )

        self.checkRename(script, 1, "person", expected)
        self.checkRename(script, 2, "$person", expected)

    def test_parameter_sigil(self):
        script = FakeScript(
            dedent(
                """\
                function Set-Label {
                    param($Name)
                    Write-Output $Name
                }
                Set-Label -Name 'x'
                          ^^^^^1
                """
            )
        )

        edits = rename(script.tree, *script.start_of(1), "Value")
        flag_edit = next(e for e in edits if e.range == script.at(1).range)
        self.assertEqual(flag_edit.new_text, "-Value")

        self.checkRename(
            script,
            1,
            "-Value",
            dedent(
                """\
                function Set-Label {
                    param($Value)
                    Write-Output $Value
                }
                Set-Label -Value 'x'
                """
            ),
        )

    def test_no_cross_scope_leakage(self):
        script = FakeScript(
            dedent(
                """\
                function A {
                    $x = 1
                    ^1
                    Write-Output $x
                }
                function B {
                    $x = 2
                    Write-Output $x
                }
                """
            )
        )

        self.checkRename(
            script,
            1,
            "y",
            dedent(
                """\
                function A {
                    $y = 1
                    Write-Output $y
                }
                function B {
                    $x = 2
                    Write-Output $x
                }
                """
            ),
        )

    def test_shadow_containment(self):
        script = FakeScript("$x = 1; function f { $x = 2; $x }; $x")

        self.assertMultiLineEqual(
            script.edited(rename(script.tree, 1, 1, "y")),
            "$y = 1; function f { $x = 2; $x }; $y",
        )

        with self.assertLogs(level="WARNING") as logs:
            rename(script.tree, 1, 1, "y")
        self.assertIn("shadowed", "\n".join(logs.output))

    def test_strict_shadowing(self):
        script = FakeScript("$x = 1; function f { $x = 2; $x }")

        with self.assertRaises(AmbiguousShadowing) as cm:
            rename(script.tree, 1, 1, "y", strict=True)

        self.assertEqual([str(e) for e in cm.exception.shadows], ["1:22-1:24"])

    def test_shadowing_is_scoped(self):
        script = FakeScript(
            dedent(
                """\
                $x = 1
                ^1
                function f { $x = 2 }
                & { $x = 3; Write-Output $x }
                if ($x) { $x = 4 }
                Write-Output $x
                """
            )
        )

        self.checkRename(
            script,
            1,
            "y",
            dedent(
                """\
                $y = 1
                function f { $x = 2 }
                & { $y = 3; Write-Output $y }
                if ($y) { $y = 4 }
                Write-Output $y
                """
            ),
        )

    def test_reads_from_nested_function(self):
        script = FakeScript(
            dedent(
                """\
                $count = 0
                function Show { Write-Output "Count: $count" }
                Write-Output $COUNT
                             ^1
                """
            )
        )

        self.checkRename(
            script,
            1,
            "total",
            dedent(
                """\
                $total = 0
                function Show { Write-Output "Count: $total" }
                Write-Output $total
                """
            ),
        )

    def test_compound_assignment(self):
        script = FakeScript(
            dedent(
                """\
                $sum = 0
                ^^^^1
                foreach ($i in 1..3) {
                    $sum += $i
                }
                Write-Output $sum
                """
            )
        )

        self.checkRename(
            script,
            1,
            "total",
            dedent(
                """\
                $total = 0
                foreach ($i in 1..3) {
                    $total += $i
                }
                Write-Output $total
                """
            ),
        )

    def test_colon_bound_argument(self):
        script = FakeScript(
            dedent(
                """\
                $v = 1
                ^^1
                Greet -name:$v
                """
            )
        )

        self.checkRename(script, 1, "w", "$w = 1\nGreet -name:$w\n")

    def test_cmdlet_flags_untouched(self):
        script = FakeScript(
            dedent(
                """\
                function f($path) { Get-Item -Path $path; f -path 'x' }
                           ^^^^^1
                f -Path 'y'
                """
            )
        )

        self.checkRename(
            script,
            1,
            "target",
            dedent(
                """\
                function f($target) { Get-Item -Path $target; f -target 'x' }
                f -target 'y'
                """
            ),
        )

    def test_splatting(self):
        script = FakeScript(
            dedent(
                """\
                $params = @{ Path = '.' }
                Get-ChildItem @params
                              ^1
                """
            )
        )

        self.checkRename(
            script,
            1,
            "options",
            dedent(
                """\
                $options = @{ Path = '.' }
                Get-ChildItem @options
                """
            ),
        )

    def test_first_use_as_declaration(self):
        script = FakeScript(
            dedent(
                """\
                function f {
                    Write-Output $a
                    Write-Output $a
                                 ^1
                    $a
                }
                """
            )
        )

        self.checkRename(
            script,
            1,
            "b",
            dedent(
                """\
                function f {
                    Write-Output $a
                    Write-Output $b
                    $b
                }
                """
            ),
        )

    def test_idempotence(self):
        source = dedent(
            """\
            $x = 1
            function f($y) { $x = $y; Write-Output $x }
            & { Write-Output $x }
            f -y $x
            """
        )

        tree = parse_script(source)
        forward = rename(tree, 1, 1, "z")
        renamed = apply_edits(source, forward)

        backward = rename(parse_script(renamed), 1, 1, "x")
        self.assertMultiLineEqual(apply_edits(renamed, backward), source)
        self.assertEqual(
            [edit.range for edit in forward],
            [edit.range for edit in backward],
        )

    def test_function_rename(self):
        script = FakeScript(
            dedent(
                """\
                function Get-Greeting { 'hi' }
                         ^1
                Get-Greeting
                ^2
                function Wrapper { get-greeting | Write-Output }
                """
            )
        )

        expected = dedent(
            """\
            function Get-Salutation { 'hi' }
            Get-Salutation
            function Wrapper { Get-Salutation | Write-Output }
            """
        )

        self.checkRename(script, 1, "Get-Salutation", expected)
        self.checkRename(script, 2, "Get-Salutation", expected)

    def test_function_rename_stops_at_redefinition(self):
        script = FakeScript(
            dedent(
                """\
                function Say { 'a' }
                ^1
                Say
                function Say { 'b' }
                Say
                """
            )
        )

        self.checkRename(
            script,
            1,
            "Speak",
            dedent(
                """\
                function Speak { 'a' }
                Speak
                function Say { 'b' }
                Say
                """
            ),
        )

    def test_dot_sourcing_rejected(self):
        script = FakeScript(
            dedent(
                """\
                $x = 1
                function f { . ./lib.ps1 }
                """
            )
        )

        for line, column in [(1, 1), (2, 10), (2, 30)]:
            with self.assertRaises(DotSourcingUnsupported):
                prepare_rename(script.tree, line, column, "y")
            with self.assertRaises(DotSourcingUnsupported):
                rename(script.tree, line, column, "y")

    def test_rejections(self):
        script = FakeScript(
            dedent(
                """\
                $x = 1
                   ^1
                Get-ChildItem -Path .
                ^2            ^3
                """
            )
        )

        with self.assertRaises(NoSymbolAtPosition):
            rename(script.tree, *script.start_of(1), "y")

        with self.assertRaises(FunctionDefinitionNotFound):
            rename(script.tree, *script.start_of(2), "Get-Item")

        with self.assertRaises(DeclarationNotFound):
            prepare_rename(script.tree, *script.start_of(3), "Folder")

    def test_prepare_rename(self):
        script = FakeScript(
            dedent(
                """\
                function Greet($name) { Write-Output $name }
                         ^1    ^2                    ^3
                """
            )
        )

        target = prepare_rename(script.tree, *script.start_of(3), "$person")
        self.assertEqual(target.kind, RenameKind.Variable)
        self.assertEqual(target.old_name, "name")
        self.assertEqual(target.new_name, "person")
        self.assertIs(target.declaration, script.node_at(2, Id.Var))

        target = prepare_rename(script.tree, *script.start_of(1), "Welcome")
        self.assertEqual(target.kind, RenameKind.Function)
        self.assertEqual(target.old_name, "Greet")
        self.assertIsInstance(target.declaration, FunctionDefinition)


class TestRenameProvider(unittest.TestCase):
    def setUp(self):
        self.script = FakeScript(
            dedent(
                """\
                $x = 1
                Write-Output $x
                             ^^1
                """
            )
        )
        self.provider = RenameProvider(self.script.tree)

    def test_prepare(self):
        placeholder = self.provider.prepare(self.script.position_of(1))

        assert placeholder is not None
        self.assertEqual(placeholder.placeholder, "$x")
        self.assertEqual(placeholder.range, self.script.at(1).range)

    def test_serve(self):
        workspace_edit = self.provider.serve(self.script.position_of(1), "y")

        assert workspace_edit is not None and workspace_edit.changes is not None
        edits = workspace_edit.changes[self.script.uri]
        self.assertEqual(self.script.edited(edits), "$y = 1\nWrite-Output $y")

    def test_rejection(self):
        position = L.Position(0, 3)

        with self.assertLogs(level="INFO"):
            self.assertIsNone(self.provider.prepare(position))
        with self.assertLogs(level="INFO"):
            self.assertIsNone(self.provider.serve(position, "y"))
