import unittest
from dataclasses import replace

from fakes import make_order, make_product

from shop.catalog import (
    DEFAULT_PRICE_CEILING,
    NO_MATCHES,
    NO_PRODUCTS,
    FilterState,
    SortCriterion,
    categories,
    derive_visible_products,
    empty_state,
    filter_options,
    format_category,
    name_sort_key,
    popularity_from_orders,
    price_ceiling,
)

CATALOG = [
    make_product("JM001", "Catan", 29990, category="juegos_mesa", manufacturer="Kosmos", distributor="Devir"),
    make_product("AC001", "Controlador Xbox", 59990, category="accesorios", manufacturer="Microsoft", distributor="Sodimac"),
    make_product("CO001", "PlayStation 5", 549990, category="consolas", manufacturer="Sony", distributor="Falabella",
                 description="Consola de ultima generacion"),
    make_product("AC002", "Auriculares HyperX", 79990, category="accesorios", manufacturer="HyperX", distributor="Falabella"),
    make_product("JM002", "Carcassonne", 24990, category="juegos_mesa", manufacturer="Hans im Gluck", distributor="Devir"),
    make_product("PP001", "Polera Level-Up", 14990, category="poleras", manufacturer="Level-Up", distributor="Level-Up"),
]


class CatalogPipelineTestCase(unittest.TestCase):
    def test_output_is_subset_of_input(self):
        states = [
            FilterState(),
            FilterState(category="accesorios"),
            FilterState(search="ca", sort=SortCriterion.NAME_DESC),
            FilterState(max_price=50000, sort=SortCriterion.PRICE_DESC),
            FilterState(manufacturers=frozenset({"Sony", "Kosmos"})),
            FilterState(category="nope"),
        ]
        for state in states:
            visible = derive_visible_products(CATALOG, state)
            self.assertTrue(all(p in CATALOG for p in visible), state)
            self.assertEqual(len({p.code for p in visible}), len(visible))

    def test_extra_constraint_never_widens_result(self):
        looser_states = [
            FilterState(),
            FilterState(category="accesorios"),
            FilterState(search="ca"),
            FilterState(max_price=60000, sort=SortCriterion.PRICE_ASC),
            FilterState(distributors=frozenset({"Devir", "Falabella"})),
        ]
        tighten = [
            lambda s: replace(s, category=s.category or "juegos_mesa"),
            lambda s: replace(s, search=s.search + "a"),
            lambda s: replace(s, max_price=min(s.max_price or 60000, 30000)),
            lambda s: replace(s, manufacturers=frozenset({"Kosmos", "HyperX"})),
            lambda s: replace(s, distributors=frozenset({"Devir"})),
        ]
        for looser in looser_states:
            wide = {p.code for p in derive_visible_products(CATALOG, looser)}
            for step in tighten:
                tighter = step(looser)
                narrow = {p.code for p in derive_visible_products(CATALOG, tighter)}
                self.assertLessEqual(narrow, wide, (looser, tighter))

    def test_default_state_keeps_catalog_order(self):
        self.assertEqual(derive_visible_products(CATALOG, FilterState()), CATALOG)

    def test_empty_catalog(self):
        self.assertEqual(derive_visible_products([], FilterState(search="x")), [])

    def test_price_ascending(self):
        products = [make_product("A", "A", 500), make_product("B", "B", 100), make_product("C", "C", 300)]
        visible = derive_visible_products(products, FilterState(sort=SortCriterion.PRICE_ASC))
        self.assertEqual([p.price for p in visible], [100, 300, 500])

    def test_price_descending_is_stable_for_ties(self):
        products = [make_product("A", "A", 100), make_product("B", "B", 300), make_product("C", "C", 100)]
        visible = derive_visible_products(products, FilterState(sort=SortCriterion.PRICE_DESC))
        self.assertEqual([p.code for p in visible], ["B", "A", "C"])

    def test_price_ceiling_boundary_is_inclusive(self):
        products = [make_product("A", "A", 1000), make_product("B", "B", 1001)]
        visible = derive_visible_products(products, FilterState(max_price=1000))
        self.assertEqual([p.code for p in visible], ["A"])

    def test_search_matches_manufacturer_only(self):
        products = [
            make_product("A", "Controller", 1000, manufacturer="Sony"),
            make_product("B", "Mouse", 1000, manufacturer="Logitech"),
        ]
        visible = derive_visible_products(products, FilterState(search="sony"))
        self.assertEqual([p.code for p in visible], ["A"])

    def test_search_matches_code_and_description(self):
        by_code = derive_visible_products(CATALOG, FilterState(search="jm00"))
        self.assertEqual([p.code for p in by_code], ["JM001", "JM002"])

        by_description = derive_visible_products(CATALOG, FilterState(search="GENERACION"))
        self.assertEqual([p.code for p in by_description], ["CO001"])

    def test_whitespace_only_search_is_ignored(self):
        self.assertEqual(derive_visible_products(CATALOG, FilterState(search="   ")), CATALOG)

    def test_category_then_checkboxes(self):
        state = FilterState(category="accesorios", distributors=frozenset({"Falabella"}))
        visible = derive_visible_products(CATALOG, state)
        self.assertEqual([p.code for p in visible], ["AC002"])

    def test_manufacturer_set_is_union(self):
        state = FilterState(manufacturers=frozenset({"Sony", "Kosmos"}))
        visible = derive_visible_products(CATALOG, state)
        self.assertEqual([p.code for p in visible], ["JM001", "CO001"])

    def test_name_sort_ignores_accents_and_case(self):
        products = [
            make_product("1", "zelda", 1),
            make_product("2", "Árbol", 1),
            make_product("3", "arbol", 1),
            make_product("4", "Bingo", 1),
        ]
        asc = derive_visible_products(products, FilterState(sort=SortCriterion.NAME_ASC))
        self.assertEqual([p.name for p in asc], ["arbol", "Árbol", "Bingo", "zelda"])

        desc = derive_visible_products(products, FilterState(sort=SortCriterion.NAME_DESC))
        self.assertEqual([p.name for p in desc][0], "zelda")
        self.assertEqual(name_sort_key("Árbol")[0], "arbol")

    def test_best_selling_uses_popularity_and_is_deterministic(self):
        orders = [
            make_order(1, 7, ("AC002", 2, 79990), ("JM002", 1, 24990)),
            make_order(2, 8, ("AC002", 1, 79990), ("PP001", 5, 14990)),
        ]
        popularity = popularity_from_orders(orders)
        self.assertEqual(popularity, {"AC002": 3, "JM002": 1, "PP001": 5})

        state = FilterState(sort=SortCriterion.BEST_SELLING)
        first = derive_visible_products(CATALOG, state, popularity)
        second = derive_visible_products(CATALOG, state, popularity)
        self.assertEqual(first, second)
        self.assertEqual(
            [p.code for p in first],
            ["PP001", "AC002", "JM002", "JM001", "AC001", "CO001"],
        )

    def test_best_selling_without_data_keeps_order(self):
        state = FilterState(sort=SortCriterion.BEST_SELLING)
        self.assertEqual(derive_visible_products(CATALOG, state), CATALOG)


class FilterStateTestCase(unittest.TestCase):
    def test_toggle_adds_and_removes(self):
        state = FilterState().toggled("manufacturers", "Sony", True)
        state = state.toggled("manufacturers", "Kosmos", True)
        self.assertEqual(state.manufacturers, frozenset({"Sony", "Kosmos"}))
        state = state.toggled("manufacturers", "Sony", False)
        self.assertEqual(state.manufacturers, frozenset({"Kosmos"}))
        # unchecking something that was never checked is harmless
        self.assertEqual(state.toggled("distributors", "X", False).distributors, frozenset())

    def test_cleared_keeps_category_only(self):
        state = FilterState(
            category="consolas",
            search="ps",
            max_price=10,
            manufacturers=frozenset({"Sony"}),
            sort=SortCriterion.PRICE_ASC,
        )
        cleared = state.cleared(549990)
        self.assertEqual(cleared, FilterState(category="consolas", max_price=549990))

    def test_category_change_drops_checkboxes(self):
        state = replace(FilterState(search="a"), manufacturers=frozenset({"Sony"}))
        moved = state.with_category("accesorios", 79990)
        self.assertEqual(moved.manufacturers, frozenset())
        self.assertEqual(moved.search, "a")
        self.assertEqual(moved.max_price, 79990)


class CatalogHelpersTestCase(unittest.TestCase):
    def test_price_ceiling(self):
        self.assertEqual(price_ceiling(CATALOG), 549990)
        self.assertEqual(price_ceiling([]), DEFAULT_PRICE_CEILING)

    def test_filter_options_follow_category(self):
        manufacturers, distributors = filter_options(CATALOG, "accesorios")
        self.assertEqual(manufacturers, ["HyperX", "Microsoft"])
        self.assertEqual(distributors, ["Falabella", "Sodimac"])

        all_manufacturers, _ = filter_options(CATALOG, None)
        self.assertEqual(len(all_manufacturers), 6)

    def test_categories_in_catalog_order(self):
        self.assertEqual(categories(CATALOG), ["juegos_mesa", "accesorios", "consolas", "poleras"])

    def test_empty_state_tells_filtered_out_from_empty_catalog(self):
        visible = derive_visible_products(CATALOG, FilterState(search="zzz"))
        self.assertEqual(empty_state(len(CATALOG), len(visible)), NO_MATCHES)
        self.assertEqual(empty_state(0, 0), NO_PRODUCTS)
        self.assertIsNone(empty_state(len(CATALOG), 2))

    def test_format_category(self):
        self.assertEqual(format_category("juegos_mesa"), "Juegos Mesa")


if __name__ == "__main__":
    unittest.main()
