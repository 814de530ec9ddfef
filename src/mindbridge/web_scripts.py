"""In-page scripts evaluated against the host page and the compiler frame."""

from __future__ import annotations

LOCATE_UPLOAD_JS = """
({ zoneSelector, inputSelector }) => {
  if (document.querySelector(zoneSelector)) return 'drop';
  if (document.querySelector(inputSelector)) return 'input';
  return '';
}
"""

DROP_FILE_JS = """
({ zoneSelector, file }) => {
  const zone = document.querySelector(zoneSelector);
  if (!zone) return false;
  const raw = atob(file.data);
  const bytes = new Uint8Array(raw.length);
  for (let i = 0; i < raw.length; i++) bytes[i] = raw.charCodeAt(i);
  const blob = new File([bytes], file.name, { type: file.mimeType });
  const transfer = new DataTransfer();
  transfer.items.add(blob);
  for (const kind of ['dragenter', 'dragover', 'drop']) {
    zone.dispatchEvent(
      new DragEvent(kind, { bubbles: true, cancelable: true, dataTransfer: transfer })
    );
  }
  return true;
}
"""

CLICK_START_JS = """
({ startSelector, buttonSelector, labels, accentColors, accentClasses }) => {
  const label = (el) =>
    String((el.tagName === 'INPUT' ? el.value : el.textContent) || '').trim().toLowerCase();
  for (const el of document.querySelectorAll(startSelector)) {
    // A wrapper holding the real control would swallow the click.
    if (el.querySelector(startSelector)) continue;
    if (label(el).includes('start')) {
      el.click();
      return label(el);
    }
  }
  for (const el of document.querySelectorAll(buttonSelector)) {
    const text = label(el);
    const background = String((el.style && el.style.backgroundColor) || '');
    const matches =
      labels.some((word) => text.includes(word)) ||
      accentColors.some((color) => background.includes(color)) ||
      accentClasses.some((name) => el.classList.contains(name));
    if (matches) {
      el.click();
      return text || 'accent-button';
    }
  }
  return '';
}
"""

SNAPSHOT_JS = """
({ buttonSelector, downloadSelector, errorSelector }) => {
  const body = document.body;
  const text = body ? String(body.innerText || body.textContent || '') : '';
  const labelled = Array.from(document.querySelectorAll(buttonSelector)).some((el) =>
    String(el.textContent || '').toLowerCase().includes('download')
  );
  const download = labelled || !!document.querySelector(downloadSelector);
  const errorEl = document.querySelector(errorSelector);
  const error = errorEl ? String(errorEl.textContent || '').trim() : '';
  return { text, download, error };
}
"""

LOCATE_DOWNLOAD_JS = """
({ buttonSelector }) => Array.from(document.querySelectorAll(buttonSelector)).some((el) =>
  String(el.textContent || '').toLowerCase().includes('download')
)
"""

CLICK_DOWNLOAD_JS = """
({ buttonSelector }) => {
  const button = Array.from(document.querySelectorAll(buttonSelector)).find((el) =>
    String(el.textContent || '').toLowerCase().includes('download')
  );
  if (!button) return false;
  button.click();
  return true;
}
"""

FETCH_BYTES_JS = """
async ({ url, timeoutMs }) => {
  const controller = new AbortController();
  const timer = setTimeout(() => controller.abort(), timeoutMs);
  try {
    const response = await fetch(url, { signal: controller.signal });
    if (!response.ok) throw new Error(`HTTP ${response.status} for ${url}`);
    const bytes = new Uint8Array(await response.arrayBuffer());
    let binary = '';
    for (let i = 0; i < bytes.length; i += 0x8000) {
      binary += String.fromCharCode.apply(null, bytes.subarray(i, i + 0x8000));
    }
    return { data: btoa(binary), type: response.headers.get('content-type') || '' };
  } finally {
    clearTimeout(timer);
  }
}
"""

FRAME_STATE_JS = "() => window.__mindbridgeFrameState !== 'pending'"

READ_FRAME_STATE_JS = "() => String(window.__mindbridgeFrameState || '')"

ADD_MESSAGE_LISTENER_JS = """
() => {
  if (window.__mindbridgeListener) return false;
  window.__mindbridgeListener = (event) => {
    try {
      window.__mindbridgeMessage({ origin: String(event.origin || ''), data: event.data });
    } catch (_e) {}
  };
  window.addEventListener('message', window.__mindbridgeListener);
  return true;
}
"""

REMOVE_MESSAGE_LISTENER_JS = """
() => {
  if (!window.__mindbridgeListener) return false;
  window.removeEventListener('message', window.__mindbridgeListener);
  window.__mindbridgeListener = null;
  return true;
}
"""

POST_FILE_JS = """
({ frameId, targetOrigin, kind, file }) => {
  const frame = document.getElementById(frameId);
  if (!frame || !frame.contentWindow) return false;
  const raw = atob(file.data);
  const bytes = new Uint8Array(raw.length);
  for (let i = 0; i < raw.length; i++) bytes[i] = raw.charCodeAt(i);
  const blob = new File([bytes], file.name, { type: file.mimeType });
  frame.contentWindow.postMessage({ type: kind, data: { file: blob } }, targetOrigin);
  return true;
}
"""

MESSAGE_BINDING = "__mindbridgeMessage"

HOST_TEMPLATE = """<!doctype html>
<html>
  <head><meta charset="utf-8"><title>mindbridge</title></head>
  <body>
    <script>window.__mindbridgeFrameState = 'pending';</script>
    <iframe
      id="{frame_id}"
      src="{src}"
      sandbox="{sandbox}"
      style="position:absolute;top:-9999px;left:-9999px;width:{width}px;height:{height}px;border:none"
      onload="window.__mindbridgeFrameState = 'loaded'"
      onerror="window.__mindbridgeFrameState = 'error'"
    ></iframe>
  </body>
</html>
"""
