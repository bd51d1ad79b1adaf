from gpabot.reports import format_date, render_report

GPA_RECORD = {
    'userId': 100,
    'firstName': 'Abebe',
    'lastName': 'Kebede & Co',
    'timestamp': '2024-06-01T10:00:00+00:00',
    'type': 'GPA',
    'gpa': '3.58',
    'grade': 'B+',
    'verificationId': 'GPA-1A2B3C4D',
    'year': 'Year 1',
    'semester': 'Semester 2',
    'program': 'Pre-Engineering',
    'results': [
        {'course': 'Computer Programing(ECEg 2052) C++', 'credit': 5, 'score': 92.0, 'grade': 'A+', 'point': 4.0},
        {'course': 'Social Anthropology(Anth. 1012)', 'credit': 4, 'score': 70.5, 'grade': 'B', 'point': 3.0},
    ],
}

CGPA_RECORD = {
    'userId': 100,
    'username': 'abebe',
    'timestamp': '2024-06-01T10:00:00+00:00',
    'type': 'CGPA',
    'gpa': '3.66',
    'grade': 'B+',
    'verificationId': 'GPA-5E6F7A8B',
    'semesters': [
        {'semester': 'Semester 1', 'gpa': '3.50', 'credit': 30},
        {'semester': 'Semester 2', 'gpa': '3.80', 'credit': 33},
    ],
}


def test_gpa_report_is_a_pdf():
    pdf = render_report(GPA_RECORD)
    assert pdf.startswith(b'%PDF')
    assert len(pdf) > 1000


def test_cgpa_report_is_a_pdf():
    assert render_report(CGPA_RECORD).startswith(b'%PDF')


def test_report_without_verification_id():
    record = dict(GPA_RECORD, verificationId=None)
    assert render_report(record).startswith(b'%PDF')


def test_format_date():
    assert format_date('2024-06-01T10:00:00+00:00') == '01 Jun 2024, 10:00 UTC'
    assert format_date('garbage') == 'garbage'
