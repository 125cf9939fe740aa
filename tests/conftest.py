"""Shared fixtures: a small theme project held by an in-memory backend."""

import pytest

from backend import InMemoryBackend
from sessions import SessionState
from tools.dispatch import ToolDispatcher
from workspace import WorkingSet

HEADER_LIQUID = """<header class="site-header">
  <nav class="site-nav">
    {% for link in linklists.main-menu.links %}
      <a href="{{ link.url }}">{{ link.title }}</a>
    {% endfor %}
  </nav>
  {% render 'mini-cart' %}
</header>

{% schema %}
{
  "name": "Header",
  "settings": [
    {
      "type": "checkbox",
      "id": "sticky_header",
      "label": "Sticky header",
      "default": true
    }
  ]
}
{% endschema %}
"""

MINI_CART_LIQUID = """<div class="mini-cart" data-mini-cart>
  {% for item in cart.items %}
    <div class="mini-cart__item">
      {{ item.product.title }}
      <span class="mini-cart__price">{{ item.final_price | money }}</span>
    </div>
  {% endfor %}
  <a href="/cart" class="mini-cart__checkout">Checkout</a>
</div>
"""

IMAGE_BANNER_LIQUID = """<div class="hero">
  <h1>{{ section.settings.heading }}</h1>
</div>
"""

THEME_CSS = """.site-header {
  display: flex;
  padding: 12px 24px;
}

.hero {
  min-height: 60vh;
  background-size: cover;
}

.mini-cart__item {
  display: grid;
}
"""

CART_JS = """function addToCart(variantId, quantity) {
  return fetch('/cart/add.js', {
    method: 'POST',
    body: JSON.stringify({ id: variantId, quantity: quantity }),
  });
}

function updateCartCount(count) {
  document.querySelector('[data-cart-count]').textContent = count;
}
"""

INDEX_JSON = """{
  "sections": {
    "banner": { "type": "image-banner" }
  }
}
"""

THEME_FILES = {
    "sections/header.liquid": HEADER_LIQUID,
    "snippets/mini-cart.liquid": MINI_CART_LIQUID,
    "sections/image-banner.liquid": IMAGE_BANNER_LIQUID,
    "assets/theme.css": THEME_CSS,
    "assets/cart.js": CART_JS,
    "templates/index.json": INDEX_JSON,
}


@pytest.fixture
def backend():
    return InMemoryBackend(dict(THEME_FILES))


@pytest.fixture
def working_set(backend):
    return WorkingSet(backend)


@pytest.fixture
def session():
    return SessionState()


@pytest.fixture
def dispatcher(working_set, session):
    return ToolDispatcher(working_set, session)


@pytest.fixture
def ctx(dispatcher):
    return dispatcher.context


def content_of(backend: InMemoryBackend, working_set: WorkingSet, path: str) -> str:
    """Persisted content for a path in the working set."""
    return backend.content_of(working_set.resolve(path).file_id)
