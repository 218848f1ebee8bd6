"""Browser-side scripts used by the runtime and wait layers."""

# Name of the CDP binding the mutation observer reports through
MUTATION_BINDING = "__browserControlMutation"

# Installs one MutationObserver per document; every batch of mutations calls
# the binding, which arrives as Runtime.bindingCalled on the CDP session.
INSTALL_MUTATION_OBSERVER = """
(bindingName) => {
    if (window.__browserControlObserver)
        return true;
    const observer = new MutationObserver(() => {
        const binding = window[bindingName];
        if (typeof binding === 'function')
            binding('');
    });
    observer.observe(document, {
        childList: true,
        subtree: true,
        attributes: true,
        characterData: true,
    });
    window.__browserControlObserver = observer;
    return true;
}
"""

# Returns the matching node, ``true`` for a hidden-wait on an absent node,
# or ``null`` while the condition does not hold.
SELECTOR_PREDICATE = """
(selector, waitForVisible, waitForHidden) => {
    const node = document.querySelector(selector);
    if (!node)
        return waitForHidden;
    if (!waitForVisible && !waitForHidden)
        return node;
    const element = node.nodeType === Node.TEXT_NODE ? node.parentElement : node;
    const style = window.getComputedStyle(element);
    const isVisible = style && style.visibility !== 'hidden' && hasVisibleBoundingBox();
    const success = waitForVisible === isVisible || waitForHidden === !isVisible;
    return success ? node : null;

    function hasVisibleBoundingBox() {
        const rect = element.getBoundingClientRect();
        return !!(rect.top || rect.bottom || rect.width || rect.height);
    }
}
"""
