from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Sequence

from lxml.html import HtmlElement
from playwright.sync_api import Error as PlaywrightError

from .selector_rules import EMBEDDING_TAGS, element_children, element_tag
from .structure import DomForest

if TYPE_CHECKING:
    from playwright.sync_api import Frame, Page

logger = logging.getLogger("locatorx.capture")

SERIALIZE_DOCUMENT_SCRIPT = """
() => {
  const VOID_TAGS = new Set([
    'area', 'base', 'br', 'col', 'embed', 'hr', 'img', 'input',
    'link', 'meta', 'source', 'track', 'wbr',
  ]);
  const RAW_TEXT_TAGS = new Set(['script', 'style']);
  const escapeText = (value) => value
    .replace(/&/g, '&amp;')
    .replace(/</g, '&lt;')
    .replace(/>/g, '&gt;');
  const escapeAttr = (value) => value
    .replace(/&/g, '&amp;')
    .replace(/"/g, '&quot;');

  const serialize = (node) => {
    if (node.nodeType === Node.TEXT_NODE) {
      return escapeText(node.nodeValue || '');
    }
    if (node.nodeType !== Node.ELEMENT_NODE) {
      return '';
    }

    const tag = node.tagName.toLowerCase();
    let attrs = '';
    for (const attr of Array.from(node.attributes)) {
      attrs += ` ${attr.name}="${escapeAttr(attr.value)}"`;
    }
    if (VOID_TAGS.has(tag)) {
      return `<${tag}${attrs}>`;
    }
    if (RAW_TEXT_TAGS.has(tag)) {
      return `<${tag}${attrs}>${node.textContent || ''}</${tag}>`;
    }

    let inner = '';
    if (node.shadowRoot) {
      const shadowChildren = Array.from(node.shadowRoot.childNodes).map(serialize).join('');
      inner += `<template shadowrootmode="${node.shadowRoot.mode}">${shadowChildren}</template>`;
    }
    const source = tag === 'template' && node.content ? node.content.childNodes : node.childNodes;
    inner += Array.from(source).map(serialize).join('');
    return `<${tag}${attrs}>${inner}</${tag}>`;
  };

  return '<!DOCTYPE html>' + serialize(document.documentElement);
}
"""

ELEMENT_PATH_SCRIPT = """
(el) => {
  const path = [];
  let current = el;
  while (current && current !== document.documentElement) {
    const parent = current.parentNode;
    if (!parent || parent.nodeType !== Node.ELEMENT_NODE) {
      return null;
    }
    path.unshift(Array.from(parent.children).indexOf(current));
    current = parent;
  }
  return current ? path : null;
}
"""


def capture_page(page: Page) -> DomForest:
    """Snapshot ``page`` (open shadow roots and direct child frames included) into a forest."""
    html = page.main_frame.evaluate(SERIALIZE_DOCUMENT_SCRIPT)
    forest = DomForest.from_html(str(html or ""))
    for frame in page.main_frame.child_frames:
        _attach_child_frame(forest, frame)
    return forest


def _attach_child_frame(forest: DomForest, frame: Frame) -> None:
    try:
        path: Any = frame.frame_element().evaluate(ELEMENT_PATH_SCRIPT)
    except PlaywrightError as exc:
        logger.warning("Skipping frame %s: embedding element unavailable (%s)", frame.url, exc)
        return
    if path is None:
        logger.warning("Skipping frame %s: embedding element sits inside a shadow root", frame.url)
        return

    element = element_at_path(forest.document.root, path)
    if element is None or element_tag(element) not in EMBEDDING_TAGS:
        logger.warning("Skipping frame %s: embedding element not found in snapshot", frame.url)
        return

    try:
        html = frame.evaluate(SERIALIZE_DOCUMENT_SCRIPT)
    except PlaywrightError as exc:
        logger.info("Frame %s is not readable, registering as cross-origin (%s)", frame.url, exc)
        forest.attach_frame(element, None, cross_origin=True)
        return
    forest.attach_frame(element, str(html or ""))


def element_at_path(root: HtmlElement, path: Sequence[Any]) -> HtmlElement | None:
    current = root
    for index in path:
        children = element_children(current)
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(children):
            return None
        current = children[index]
    return current
