"""
Page scripts injected by the Playwright engine.

Each constant is a JavaScript function expression suitable for
`page.evaluate(script, arg)` or `page.wait_for_function(script, arg=...)`.
"""

# Returns the first selector whose element is visible and editable/clickable,
# or null. arg: list of selectors.
LOCATE_SCRIPT = """
(selectors) => {
    const usable = (el) => {
        if (!el) return false;
        const rect = el.getBoundingClientRect();
        if (rect.width <= 0 || rect.height <= 0) return false;
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden') return false;
        if (el.disabled || el.readOnly) return false;
        if (el.getAttribute('aria-disabled') === 'true') return false;
        return true;
    };
    for (const selector of selectors) {
        let elements;
        try {
            elements = document.querySelectorAll(selector);
        } catch (e) {
            continue;
        }
        for (const el of elements) {
            if (usable(el)) return selector;
        }
    }
    return null;
}
"""

# Replaces the element's content without focusing it. Content-editable
# surfaces are emptied, then get a synthetic paste carrying a DataTransfer
# (execCommand as fallback); form fields get the native value setter so
# framework value trackers notice.
# arg: {selector, text}
PASTE_SCRIPT = """
({selector, text}) => {
    const el = document.querySelector(selector);
    if (!el) return {status: 'missing'};
    if (el.isContentEditable) {
        el.textContent = '';
        const data = new DataTransfer();
        data.setData('text/plain', text);
        const pasted = el.dispatchEvent(new ClipboardEvent('paste', {
            clipboardData: data, bubbles: true, cancelable: true
        }));
        if (pasted && !el.textContent.includes(text)) {
            document.execCommand('insertText', false, text);
        }
        el.dispatchEvent(new InputEvent('input', {bubbles: true, data: text}));
        return {status: 'ok', kind: 'contenteditable'};
    }
    const proto = el instanceof HTMLTextAreaElement
        ? HTMLTextAreaElement.prototype
        : HTMLInputElement.prototype;
    const setter = Object.getOwnPropertyDescriptor(proto, 'value').set;
    if (el._valueTracker) el._valueTracker.setValue('');
    setter.call(el, text);
    el.dispatchEvent(new Event('input', {bubbles: true}));
    el.dispatchEvent(new Event('change', {bubbles: true}));
    return {status: 'ok', kind: el.tagName.toLowerCase()};
}
"""

# Dispatches a synthetic Enter keydown/keypress/keyup without focusing.
# arg: selector
ENTER_SCRIPT = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    for (const type of ['keydown', 'keypress', 'keyup']) {
        el.dispatchEvent(new KeyboardEvent(type, {
            key: 'Enter', code: 'Enter', keyCode: 13, which: 13,
            bubbles: true, cancelable: true
        }));
    }
    return true;
}
"""

# Suspends page timers and animation frames while the window is inactive.
PAUSE_SCRIPT = """
() => {
    if (typeof window._hibernateState === 'undefined') {
        window._hibernateState = {
            setInterval: window.setInterval,
            setTimeout: window.setTimeout,
            requestAnimationFrame: window.requestAnimationFrame
        };
        window.setInterval = function() { return 0; };
        window.setTimeout = function() { return 0; };
        window.requestAnimationFrame = function() { return 0; };
        return true;
    }
    return false;
}
"""

# Restores the functions saved by PAUSE_SCRIPT. Timers created while paused
# stay no-ops.
RESUME_SCRIPT = """
() => {
    if (typeof window._hibernateState !== 'undefined') {
        window.setInterval = window._hibernateState.setInterval;
        window.setTimeout = window._hibernateState.setTimeout;
        window.requestAnimationFrame = window._hibernateState.requestAnimationFrame;
        delete window._hibernateState;
        return true;
    }
    return false;
}
"""
