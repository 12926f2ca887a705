"""
Property-based tests for subdomain extraction.
"""
from hypothesis import assume, given, settings, strategies as st
from apps.tenants.resolver import TenantResolver

slugs = st.from_regex(r'\A[a-z0-9](?:[a-z0-9-]{0,30}[a-z0-9])?\Z')
ports = st.integers(min_value=1, max_value=65535)


def resolver():
    return TenantResolver(
        header_name='X-Tenant-ID',
        app_domain='clinics.test',
        timeout_ms=0,
        require_header_membership=False,
    )


class TestSubdomainProperties:

    @given(slug=slugs, port=st.none() | ports)
    @settings(max_examples=100)
    def test_slug_recovered_from_host(self, slug, port):
        assume(slug != '127')
        host = f"{slug}.clinics.test" if port is None else f"{slug}.clinics.test:{port}"

        assert resolver().subdomain_for(host) == slug

    @given(slug=slugs)
    @settings(max_examples=50)
    def test_case_insensitive(self, slug):
        assume(slug != '127')
        assert resolver().subdomain_for(f"{slug.upper()}.CLINICS.TEST") == slug

    @given(slug=slugs, port=st.none() | ports)
    @settings(max_examples=50)
    def test_other_domains_never_match(self, slug, port):
        host = f"{slug}.clinics.example" if port is None else f"{slug}.clinics.example:{port}"
        assert resolver().subdomain_for(host) is None
