"""Tests for the per-run attribute cache."""

from configurator.attribute_cache import AttributeCache, AttributeSection, CachedAttribute

COLOR = CachedAttribute(id="a1", name="Color", slug="color", input_type="DROPDOWN")
AUTHOR = CachedAttribute(id="a2", name="Author", slug="author", input_type="PLAIN_TEXT")


class TestAttributeCache:
    """Tests for AttributeCache."""

    def test_sections_are_separate(self) -> None:
        """Test product and content lookups."""
        cache = AttributeCache()
        cache.populate_product_attributes([COLOR])
        cache.populate_content_attributes([AUTHOR])

        assert cache.get_product_attribute("Color") == COLOR
        assert cache.get_product_attribute("Author") is None
        assert cache.has_content_attribute("Author")
        assert cache.get_stats().total_count == 2

    def test_last_write_wins(self) -> None:
        """Test that repopulating a name replaces it."""
        cache = AttributeCache()
        cache.populate_product_attributes([COLOR])
        replacement = CachedAttribute(id="a9", name="Color", slug="colour", input_type="SWATCH")
        cache.populate_product_attributes([replacement])

        assert cache.get_product_attribute("Color") == replacement
        assert cache.product_attribute_names() == ["Color"]

    def test_wrong_section(self) -> None:
        """Test locating an attribute in the other section."""
        cache = AttributeCache()
        cache.populate_content_attributes([AUTHOR])

        result = cache.find_attribute_in_wrong_section("Author", "product")
        assert result.found
        assert result.actual_section == AttributeSection.CONTENT
        assert result.attribute == AUTHOR
        assert not cache.find_attribute_in_wrong_section("Author", AttributeSection.CONTENT).found

    def test_clear(self) -> None:
        """Test clearing both sections."""
        cache = AttributeCache()
        cache.populate_product_attributes([COLOR])
        cache.populate_content_attributes([AUTHOR])
        cache.clear()
        assert cache.get_stats().total_count == 0
