"""Fixed capture-form selections - the same for every employer"""

# Capture form answers
CAPTURE_FORM_DEFAULTS = {
    # Radio values
    'submission_medium': '1',  # Preprinted
    'submission_mode': '2',  # Contribution

    # Custom dropdowns: label hint -> option text
    'contribution_type': ('Contribution Type', 'NORMAL'),
    'staff_category': ('Staff Category', 'ALL'),
}

# Dropdown fills in the order the form expects them
CAPTURE_DROPDOWNS = ['contribution_type', 'staff_category']


def format_amount(amount):
    """Amounts are always entered with two decimals"""
    return f"{float(amount):.2f}"
