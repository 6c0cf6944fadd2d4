"""
Semantic Model Tests — heuristic type inference over a workspace.

Validates:
  1. TypeSymbol display forms (keywords, generics, arrays, nullables)
  2. Expression typing: literals, creation, operators, locals, members, await
  3. Name binding: enclosing namespaces, usings, aliases, ambiguity
  4. Minimal display strings at a position
  5. Declaration index contents
"""

import os
import sys
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from syntax_transformer import csharp_syntax as cs
from syntax_transformer.compilation import Compilation
from syntax_transformer.semantic_model import (
    TypeSymbol,
    array_of,
    element_type_of,
    error_type,
    special_type,
)


def build(sources):
    compilation = Compilation.from_sources(sources)
    return compilation


def model_for(compilation, path):
    tree = next(t for t in compilation.trees if t.file_path == path)
    return tree, compilation.get_semantic_model(tree)


def declarations(tree):
    """{variable name: local_declaration_statement} for every local."""
    found = {}
    for element in tree.root.descendants():
        if element.kind == "local_declaration_statement":
            declaration = cs.variable_declaration(element)
            for declarator in cs.declarators(declaration):
                found[cs.declarator_name(declarator)] = element
    return found


def initializer_type(model, statement):
    declaration = cs.variable_declaration(statement)
    value = cs.initializer_value(cs.declarators(declaration)[0])
    return model.get_type_info(value).type


def var_symbol(model, statement):
    return model.get_symbol_info(cs.declared_type(cs.variable_declaration(statement)))


LIBRARY = """\
using System.Collections.Generic;
using System.Threading.Tasks;

namespace Shop.Data
{
    public class Product
    {
        public string Name { get; set; }
        public int Stock;
    }

    public class Repository<T>
    {
        public List<T> Items { get; set; }
        public T Find(int id) { return default(T); }
        public Task<T> LoadAsync(int id) { return null; }
    }

    public class ProductRepository : Repository<Product>
    {
    }
}
"""


class TestTypeSymbol(unittest.TestCase):

    def test_keyword_display(self):
        self.assertEqual(special_type("int").to_display_string(), "int")
        self.assertEqual(TypeSymbol("Int32", "System", kind="struct").to_display_string(), "int")

    def test_generic_display(self):
        symbol = TypeSymbol("Dictionary", "System.Collections.Generic",
                            (special_type("string"), TypeSymbol("Product", "Shop.Data")))
        self.assertEqual(symbol.to_display_string(),
                         "System.Collections.Generic.Dictionary<string, Shop.Data.Product>")

    def test_array_and_nullable_display(self):
        self.assertEqual(array_of(special_type("string")).to_display_string(), "string[]")
        nullable = TypeSymbol("Nullable", "System", (special_type("int"),), "struct")
        self.assertEqual(nullable.to_display_string(), "int?")

    def test_error_type_displays_written_text(self):
        self.assertEqual(error_type("ControllerBase").to_display_string(), "ControllerBase")

    def test_equality_is_structural(self):
        self.assertEqual(special_type("int"), TypeSymbol("Int32", "System", kind="struct"))
        self.assertNotEqual(special_type("int"), special_type("long"))

    def test_element_types(self):
        lst = TypeSymbol("List", "System.Collections.Generic", (special_type("int"),))
        self.assertEqual(element_type_of(lst), special_type("int"))
        self.assertEqual(element_type_of(array_of(special_type("bool"))), special_type("bool"))
        self.assertEqual(element_type_of(special_type("string")), special_type("char"))
        self.assertIsNone(element_type_of(special_type("int")))


class TestExpressionTypes(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        body = """\
using System.Collections.Generic;
using System.Linq;
using Shop.Data;

namespace Shop.App
{
    public class Worker
    {
        private ProductRepository repo;

        public async void Run(int count, string label)
        {
            var i = 1;
            var l = 2L;
            var u = 3u;
            var f = 1.5f;
            var d = 2.5;
            var m = 9.99m;
            var s = "text";
            var c = 'x';
            var b = false;
            var n = null;
            var sum = i + d;
            var cmp = i < count;
            var concat = label + i;
            var neg = -c;
            var p = new Product();
            var stock = p.Stock;
            var items = repo.Items;
            var first = items.First();
            var found = repo.Find(3);
            var loaded = await repo.LoadAsync(3);
            var names = new List<string>();
            var upper = names.ToArray();
            var len = label.Length;
            var arr = new int[3];
            var cell = arr[0];
            var paren = (i);
            var cast = (long)i;
            var text = i.ToString();
            var big = 3000000000;
            var huge = 0xFFFFFFFF;
            var wide = 0x1_0000_0000;
            var max = 18446744073709551615;
            var bigU = 5000000000u;
            var smallL = 7L;
            var merged = p + p;
            var span = System.DateTime.Now - System.DateTime.Now;
            var addr = &i;
            var deref = *addr;
            var negU = -u;
        }
    }
}
"""
        cls.compilation = build({"Library.cs": LIBRARY, "Worker.cs": body})
        cls.tree, cls.model = model_for(cls.compilation, "Worker.cs")
        cls.locals = declarations(cls.tree)

    def type_of(self, name):
        return initializer_type(self.model, self.locals[name])

    def display(self, name):
        symbol = self.type_of(name)
        return symbol.to_display_string() if symbol is not None else None

    def test_numeric_literals(self):
        self.assertEqual(self.display("i"), "int")
        self.assertEqual(self.display("l"), "long")
        self.assertEqual(self.display("u"), "uint")
        self.assertEqual(self.display("f"), "float")
        self.assertEqual(self.display("d"), "double")
        self.assertEqual(self.display("m"), "decimal")

    def test_integer_literals_typed_by_magnitude(self):
        self.assertEqual(self.display("big"), "uint")
        self.assertEqual(self.display("huge"), "uint")
        self.assertEqual(self.display("wide"), "long")
        self.assertEqual(self.display("max"), "ulong")
        self.assertEqual(self.display("bigU"), "ulong")
        self.assertEqual(self.display("smallL"), "long")

    def test_other_literals(self):
        self.assertEqual(self.display("s"), "string")
        self.assertEqual(self.display("c"), "char")
        self.assertEqual(self.display("b"), "bool")
        self.assertIsNone(self.type_of("n"))

    def test_operators(self):
        self.assertEqual(self.display("sum"), "double")
        self.assertEqual(self.display("cmp"), "bool")
        self.assertEqual(self.display("concat"), "string")
        self.assertEqual(self.display("neg"), "int")
        self.assertEqual(self.display("negU"), "long")

    def test_unmodelled_operators_unresolved(self):
        """User-defined operators and pointer operations have no inferred type."""
        for name in ("merged", "span", "addr", "deref"):
            self.assertIsNone(self.type_of(name), name)

    def test_object_creation_and_members(self):
        self.assertEqual(self.display("p"), "Shop.Data.Product")
        self.assertEqual(self.display("stock"), "int")

    def test_inherited_generic_members(self):
        self.assertEqual(self.display("items"), "System.Collections.Generic.List<Shop.Data.Product>")
        self.assertEqual(self.display("found"), "Shop.Data.Product")

    def test_linq_and_bcl_members(self):
        self.assertEqual(self.display("first"), "Shop.Data.Product")
        self.assertEqual(self.display("upper"), "string[]")
        self.assertEqual(self.display("len"), "int")
        self.assertEqual(self.display("text"), "string")

    def test_await_unwraps_task(self):
        self.assertEqual(self.display("loaded"), "Shop.Data.Product")

    def test_arrays_casts_parentheses(self):
        self.assertEqual(self.display("arr"), "int[]")
        self.assertEqual(self.display("cell"), "int")
        self.assertEqual(self.display("paren"), "int")
        self.assertEqual(self.display("cast"), "long")

    def test_var_symbol_matches_initializer(self):
        for name in ("i", "p", "items", "loaded"):
            self.assertEqual(var_symbol(self.model, self.locals[name]), self.type_of(name), name)

    def test_var_symbol_unresolved_for_null(self):
        self.assertIsNone(var_symbol(self.model, self.locals["n"]))

    def test_positions_are_source_offsets(self):
        source = self.tree.to_full_string()
        statement = self.locals["sum"]
        self.assertEqual(self.model.position_of(statement), source.index("var sum"))

    def test_unknown_node_has_no_position(self):
        self.assertIsNone(self.model.position_of(object()))


class TestNameBinding(unittest.TestCase):

    def test_minimal_name_uses_imports(self):
        compilation = build({"Library.cs": LIBRARY, "A.cs": """\
using Shop.Data;

namespace Shop.App
{
    class A { void M() { var p = new Product(); } }
}
"""})
        tree, model = model_for(compilation, "A.cs")
        statement = declarations(tree)["p"]
        symbol = var_symbol(model, statement)
        self.assertEqual(model.to_minimal_display_string(symbol, model.position_of(statement)), "Product")

    def test_minimal_name_qualified_without_import(self):
        compilation = build({"Library.cs": LIBRARY, "A.cs": """\
namespace Other
{
    class A { void M() { var p = new Shop.Data.Product(); } }
}
"""})
        tree, model = model_for(compilation, "A.cs")
        statement = declarations(tree)["p"]
        symbol = var_symbol(model, statement)
        self.assertEqual(model.to_minimal_display_string(symbol, model.position_of(statement)),
                         "Shop.Data.Product")

    def test_parent_namespace_is_in_scope(self):
        compilation = build({"Library.cs": LIBRARY, "A.cs": """\
namespace Shop.Data.Import
{
    class A { void M() { var p = new Product(); } }
}
"""})
        tree, model = model_for(compilation, "A.cs")
        statement = declarations(tree)["p"]
        symbol = var_symbol(model, statement)
        self.assertEqual(symbol.full_name, "Shop.Data.Product")
        self.assertEqual(model.to_minimal_display_string(symbol, model.position_of(statement)), "Product")

    def test_alias_is_preferred(self):
        compilation = build({"A.cs": """\
using Builder = System.Text.StringBuilder;

class A { void M() { var b = new Builder(); } }
"""})
        tree, model = model_for(compilation, "A.cs")
        statement = declarations(tree)["b"]
        symbol = var_symbol(model, statement)
        self.assertEqual(symbol.to_display_string(), "System.Text.StringBuilder")
        self.assertEqual(model.to_minimal_display_string(symbol, model.position_of(statement)), "Builder")

    def test_ambiguous_imports_qualify(self):
        compilation = build({
            "Parts.cs": "namespace Alpha { public class Widget { } }\nnamespace Beta { public class Widget { } }\n",
            "A.cs": """\
using Alpha;
using Beta;

class A { void M() { var w = new Alpha.Widget(); } }
""",
        })
        tree, model = model_for(compilation, "A.cs")
        statement = declarations(tree)["w"]
        symbol = var_symbol(model, statement)
        self.assertEqual(model.to_minimal_display_string(symbol, model.position_of(statement)), "Alpha.Widget")

    def test_file_scoped_namespace(self):
        compilation = build({"A.cs": """\
namespace Shop.Scoped;

public class Thing { }

public class User
{
    void M() { var t = new Thing(); }
}
"""})
        tree, model = model_for(compilation, "A.cs")
        statement = declarations(tree)["t"]
        symbol = var_symbol(model, statement)
        self.assertEqual(symbol.full_name, "Shop.Scoped.Thing")
        self.assertEqual(model.to_minimal_display_string(symbol, model.position_of(statement)), "Thing")

    def test_unresolved_base_type_is_error_type(self):
        compilation = build({"C.cs": "using Microsoft.AspNetCore.Mvc;\nclass C : ControllerBase { }\n"})
        tree, model = model_for(compilation, "C.cs")
        cls = next(e for e in tree.root.descendants() if e.kind == "class_declaration")
        base = cs.base_types(cls)[0]
        resolved = model.get_type_info(base).type
        self.assertTrue(resolved.is_error)
        self.assertEqual(resolved.to_display_string(), "ControllerBase")
        self.assertIsNone(model.get_symbol_info(base))


class TestWorkspaceIndex(unittest.TestCase):

    def test_types_and_members_indexed(self):
        compilation = build({"Library.cs": LIBRARY})
        index = compilation.index
        self.assertTrue(index.is_built)
        product = index.find_type("Shop.Data.Product")
        self.assertIsNotNone(product)
        self.assertIn("Name", product.members)
        self.assertIn("Stock", product.members)
        self.assertEqual(product.members["Stock"][0].kind, "field")
        repo = index.find_type("Shop.Data.Repository", arity=1)
        self.assertIsNotNone(repo)
        self.assertEqual(repo.members["Find"][0].kind, "method")
        self.assertTrue(index.has_namespace("Shop"))

    def test_records_expose_positional_properties(self):
        compilation = build({"R.cs": "namespace N { public record Point(int X, int Y); }\n"})
        point = compilation.index.find_type("N.Point")
        self.assertIsNotNone(point)
        self.assertIn("X", point.members)

    def test_global_usings(self):
        compilation = build({"G.cs": "global using System.Text;\n",
                             "A.cs": "class A { void M() { var b = new StringBuilder(); } }\n"})
        self.assertEqual([u.target for u in compilation.index.global_usings], ["System.Text"])
        tree, model = model_for(compilation, "A.cs")
        statement = declarations(tree)["b"]
        self.assertEqual(var_symbol(model, statement).full_name, "System.Text.StringBuilder")

    def test_nested_types(self):
        compilation = build({"A.cs": """\
namespace N
{
    public class Outer
    {
        public class Inner { }
        void M() { var x = new Inner(); }
    }
}
"""})
        tree, model = model_for(compilation, "A.cs")
        symbol = var_symbol(model, declarations(tree)["x"])
        self.assertEqual(symbol.to_display_string(), "N.Outer.Inner")


if __name__ == "__main__":
    unittest.main()
