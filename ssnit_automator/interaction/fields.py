"""Field value injection for the portal's reactive form inputs

The portal's components listen for input/change events, not raw value
assignment. Values are written through the element prototype's native value
setter and the events a user would produce are dispatched afterwards.
"""

import ssnit_automator.config as config
from ssnit_automator.utils.timing import human_delay

_SET_NATIVE_VALUE_JS = """(el, value) => {
    const own = Object.getOwnPropertyDescriptor(el, 'value');
    const proto = Object.getOwnPropertyDescriptor(Object.getPrototypeOf(el), 'value');
    if (proto && proto.set && (!own || own.set !== proto.set)) {
        proto.set.call(el, value);
    } else if (own && own.set) {
        own.set.call(el, value);
    } else {
        el.value = value;
    }
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    el.dispatchEvent(new InputEvent('input', {
        bubbles: true, cancelable: true, inputType: 'insertText', data: String(value)
    }));
}"""

_CHECK_RADIO_JS = """(el) => {
    const wrapper = el.closest('.radio-custom') || el.closest('.radio-inline') || el.parentElement;
    if (wrapper && wrapper !== el) wrapper.click();
    el.checked = true;
    el.dispatchEvent(new Event('change', { bubbles: true }));
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('click', { bubbles: true }));
    return el.checked;
}"""


def set_native_value(element, value):
    """Assign a value and dispatch input/change events"""
    element.evaluate(_SET_NATIVE_VALUE_JS, str(value))


def set_reactive_input(element, value):
    """Scoped blur → focus → set → blur sequence with settle delays"""
    try:
        element.blur()
        human_delay(*config.delay_range("focus_delay"))
        element.focus()
        human_delay(*config.delay_range("focus_delay"))
        set_native_value(element, value)
        element.blur()
        human_delay(*config.delay_range("blur_settle"))
        return True
    except Exception as e:
        print(f"  ⚠️ Error setting field value: {e}")
        return False


def check_custom_radio(element):
    """Custom radios need their wrapper clicked, not only the input"""
    try:
        if element.is_checked():
            return True
        checked = element.evaluate(_CHECK_RADIO_JS)
        human_delay(*config.delay_range("field_gap"))
        return bool(checked)
    except Exception as e:
        print(f"  ⚠️ Error selecting radio: {e}")
        return False


def select_custom_option(page, label_hint, target_text):
    """Pick target_text in the custom dropdown whose container mentions label_hint"""
    try:
        containers = page.locator(".form-group, .m-b-5, .m-b-10").filter(has_text=label_hint)
        if containers.count() == 0:
            print(f"  ⚠️ Dropdown '{label_hint}' not found")
            return False
        container = containers.first

        toggle = container.locator(".dropdown-toggle, .v-select")
        if toggle.count() > 0:
            toggle.first.click()
            human_delay(*config.delay_range("dropdown_open"))

        options = page.locator(".vs__dropdown-menu li, .vs__dropdown-option, .dropdown-menu li")
        for i in range(options.count()):
            option = options.nth(i)
            if (option.inner_text() or "").strip().upper() == target_text.upper():
                option.click()
                human_delay(*config.delay_range("dropdown_select"))
                return True

        # Searchable dropdowns accept typed text + Enter
        search = container.locator('input[type="search"], input.form-control')
        if search.count() > 0 and search.first.is_visible():
            set_native_value(search.first, target_text)
            human_delay(*config.delay_range("dropdown_select"))
            search.first.press("Enter")
            human_delay(*config.delay_range("dropdown_select"))
            return True

        print(f"  ⚠️ Option '{target_text}' not found in '{label_hint}'")
        return False
    except Exception as e:
        print(f"  ⚠️ Error selecting '{target_text}' in '{label_hint}': {e}")
        return False
