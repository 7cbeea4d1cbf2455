"""
Tests for path normalization

Tests mapping observed URLs to path templates including:
- Identifier-shaped segments
- Template-named placeholders
- Varying segments beside a literal segment
- Order independence and cross-method name harmony
"""

import itertools

from apispecs.analysis import PathObservation, normalize_paths
from apispecs.analysis.paths import is_identifier, template_segments


def obs(method, path, template=''):
    return PathObservation(method, f"https://api.example.com{path}", template)


class TestIdentifiers:
    """Test identifier detection."""

    def test_numeric(self):
        assert is_identifier('42')

    def test_uuid(self):
        assert is_identifier('3f2b8c1e-9d4a-4b7e-8f00-1a2b3c4d5e6f')

    def test_long_hex(self):
        assert is_identifier('507f1f77bcf86cd799439011')

    def test_words_are_not_identifiers(self):
        assert not is_identifier('users')
        assert not is_identifier('deadbeefdeadbeef')  # hex letters without a digit


class TestTemplateSegments:
    """Test splitting URL templates."""

    def test_base_variable(self):
        assert template_segments('{{baseUrl}}/users/{{id}}?x=1') == ['users', '{{id}}']

    def test_absolute_url(self):
        assert template_segments('https://api.example.com/a/:id') == ['a', ':id']

    def test_path_only(self):
        assert template_segments('/a/b') == ['a', 'b']


class TestNormalizePaths:
    """Test normalize_paths()."""

    def test_numeric_ids_collapse(self):
        """Test /users/1 and /users/2 share /users/{id}."""
        templates = normalize_paths([obs('GET', '/users/1'), obs('GET', '/users/2')])

        assert templates == ['/users/{id}', '/users/{id}']

    def test_single_numeric_observation(self):
        """Test one identifier-shaped observation still becomes a placeholder."""
        assert normalize_paths([obs('GET', '/orders/1001')]) == ['/orders/{id}']

    def test_literal_paths_kept(self):
        """Test paths without identifiers stay literal."""
        assert normalize_paths([obs('GET', '/health'), obs('GET', '/users')]) == ['/health', '/users']

    def test_varying_words_collapse(self):
        """Test /users/alice and /users/bob share /users/{id}."""
        templates = normalize_paths([obs('GET', '/users/alice'), obs('GET', '/users/bob')])

        assert templates == ['/users/{id}', '/users/{id}']

    def test_word_next_to_identifier_collapses(self):
        """Test /users/me joins /users/42 under one template."""
        templates = normalize_paths([obs('GET', '/users/me'), obs('GET', '/users/42')])

        assert templates == ['/users/{id}', '/users/{id}']

    def test_varying_words_other_method_untouched(self):
        """Test values only vary within one method."""
        templates = normalize_paths([obs('GET', '/users/alice'), obs('DELETE', '/users/bob')])

        assert templates == ['/users/alice', '/users/bob']

    def test_varying_slug(self):
        """Test slug values that vary become a placeholder."""
        templates = normalize_paths([obs('GET', '/files/report-2023.pdf'), obs('GET', '/files/notes-1.txt')])

        assert templates == ['/files/{id}', '/files/{id}']

    def test_template_names_placeholder(self):
        """Test a {{var}} in the template names the placeholder."""
        templates = normalize_paths([
            obs('GET', '/users/7', '{{baseUrl}}/users/{{userId}}'),
            obs('GET', '/users/8', '{{baseUrl}}/users/{{userId}}'),
        ])

        assert templates == ['/users/{userId}', '/users/{userId}']

    def test_template_marks_word_segment(self):
        """Test a templated segment is a placeholder even when its value is a word."""
        templates = normalize_paths([obs('GET', '/accounts/alice', '{{base}}/accounts/{{account}}')])

        assert templates == ['/accounts/{account}']

    def test_postman_path_variable(self):
        """Test :name segments name the placeholder."""
        templates = normalize_paths([obs('GET', '/users/5/posts', 'https://api.example.com/users/:uid/posts')])

        assert templates == ['/users/{uid}/posts']

    def test_names_harmonized_across_methods(self):
        """Test GET and DELETE on the same shape use one parameter name."""
        templates = normalize_paths([
            obs('GET', '/users/1', '{{base}}/users/{{userId}}'),
            obs('DELETE', '/users/2', '{{base}}/users/2'),
        ])

        assert templates == ['/users/{userId}', '/users/{userId}']

    def test_multiple_placeholders_unique(self):
        """Test two generic placeholders get distinct names."""
        templates = normalize_paths([obs('GET', '/users/1/posts/2')])

        assert templates == ['/users/{id}/posts/{id2}']

    def test_root_path(self):
        """Test URLs without a path map to '/'."""
        assert normalize_paths([PathObservation('GET', 'https://api.example.com')]) == ['/']

    def test_order_independent(self):
        """Test every permutation gives the same mapping."""
        observations = [
            obs('GET', '/users/1'),
            obs('GET', '/users/me'),
            obs('GET', '/users/2', '{{b}}/users/{{userId}}'),
            obs('POST', '/users'),
            obs('GET', '/files/a-1'),
            obs('GET', '/files/b-2'),
        ]
        expected = dict(zip(observations, normalize_paths(observations)))

        for permutation in itertools.permutations(observations):
            assert dict(zip(permutation, normalize_paths(list(permutation)))) == expected
