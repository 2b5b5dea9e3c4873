"""
Prompt template for the extraction node.

The model reads a Japanese bank transfer confirmation (振込利用明細) and returns
the payees with their amounts as a JSON array.
"""

EXTRACTION_PROMPT = """\
From the provided image of a Japanese bank transfer confirmation (振込利用明細),
extract the list of payees (受取人名) and their corresponding payment amounts (支払金額).
The output should be a JSON array of objects. Each object should have two keys:
"name" (the payee's full name in Japanese) and "amount" (the numerical value of the payment).

Example format:
[
    {"name": "上河内さや", "amount": 9900},
    {"name": "坂口 暁子", "amount": 183764}
]
"""
