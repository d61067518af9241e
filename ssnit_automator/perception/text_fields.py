"""Text field lookup"""


def find_input_by_label(page, label_text):
    """Locate the input associated with a <label> containing label_text

    Tries the label's for= target first, then the first text-like input in
    the label's form-group (or parent element).
    """
    search_text = label_text.lower()
    try:
        labels = page.locator("label")
        for i in range(labels.count()):
            label = labels.nth(i)
            text = (label.inner_text() or "").lower()
            if search_text not in text:
                continue

            # Explicit for= attribute
            target_id = label.get_attribute("for")
            if target_id:
                target = page.locator(f'[id="{target_id}"]')
                if target.count() > 0:
                    return target.first

            # Inputs inside the same form-group
            group = label.locator(
                "xpath=ancestor::*[contains(concat(' ', normalize-space(@class), ' '), ' form-group ')][1]"
            )
            if group.count() == 0:
                group = label.locator("xpath=..")
            inputs = group.first.locator(
                'input[type="text"], input.form-control, input[type="number"]'
            )
            if inputs.count() > 0:
                return inputs.first
    except Exception as e:
        print(f"  ⚠️ Error finding '{label_text}' input: {e}")
    return None


def input_value(element):
    """Current value of an input locator ('' when unreadable)"""
    try:
        return element.input_value() or ""
    except Exception:
        return ""
