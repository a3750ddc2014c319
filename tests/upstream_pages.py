"""
Canned upstream pages and URLs shared by the login / feed tests.
"""

import json

from schedassist.config import UpstreamConfig


CONFIG = UpstreamConfig(timeout=5.0)

LOGIN_URL = CONFIG.login_url
TICKET_URL = "https://jw.ustc.edu.cn/ucas-sso/login?ticket=ST-1-abc"
CAPTCHA_URL = "https://passport.ustc.edu.cn/validatecode.jsp?type=login"
COURSE_TABLE_URL = CONFIG.course_table_url
DATA_URL = CONFIG.data_url

CAPTCHA_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"

LOGIN_PAGE = """
<html><head><title>Unified Identity Authentication</title></head>
<body>
<form id="fm1" action="/login" method="post">
  <input type="text" name="username"/>
  <input type="password" name="password"/>
  <input type="hidden" name="lt" value="LT-1234-abcdef"/>
  <input type="hidden" name="execution" value="e1s1"/>
  <input type="hidden" name="_eventId" value="submit"/>
</form>
</body></html>
"""

LOGIN_PAGE_EXECUTION_ONLY = """
<html><head><title>Login</title></head>
<body>
<form id="fm1" action="/login" method="post">
  <input type="text" name="username"/>
  <input type="password" name="password"/>
  <input type="hidden" id="execution" value="e4s1"/>
</form>
</body></html>
"""

LOGIN_PAGE_WITHOUT_TOKENS = """
<html><head><title>Maintenance Notice</title></head>
<body><p>The login service is being upgraded.</p></body></html>
"""

LOGIN_PAGE_WITH_CAPTCHA = """
<html><head><title>Unified Identity Authentication</title></head>
<body>
<form id="fm1" action="/login" method="post">
  <input type="text" name="username"/>
  <input type="password" name="password"/>
  <input type="hidden" name="lt" value="LT-9999-captcha"/>
  <input type="hidden" name="execution" value="e2s1"/>
  <img id="validateImg" src="/validatecode.jsp?type=login"/>
  <input type="text" name="vcode"/>
</form>
</body></html>
"""

REJECTED_PAGE = """
<html><head><title>Unified Identity Authentication</title></head>
<body>
<form id="fm1" action="/login" method="post">
  <div id="msg" class="errors">Wrong username or password</div>
  <input type="text" name="username"/>
  <input type="password" name="password"/>
  <input type="hidden" name="execution" value="e1s2"/>
</form>
</body></html>
"""

REJECTED_PAGE_NO_MESSAGE = """
<html><body>
<form id="fm1"><input type="password" name="password"/></form>
</body></html>
"""

SCRIPT_REDIRECT_PAGE = """
<html><head><title>Loading</title></head>
<body><div id="sso_redirect"></div>
<script>window.location = "https://jw.ustc.edu.cn/ucas-sso/login?ticket=ST-1-abc";</script>
</body></html>
"""

FEED_PAGE_WITH_IDS = """
<html><head><title>My Course Table</title></head>
<body>
<div id="app"></div>
<script>
  var config = {
    studentId: "123456",
    bizTypeId: 2
  };
</script>
</body></html>
"""

LESSONS = [
    {
        "courseName": "Linear Algebra",
        "classroom": {"name": "3A102"},
        "teachers": [{"name": "Li"}],
        "weeks": [1, 2, 3],
        "weekday": 1,
        "startUnit": 1,
        "endUnit": 2,
    },
    {
        "nameZh": "College Physics",
        "room": {"name": "3C102"},
        "weeks": [1],
        "weekday": 3,
        "startUnit": 6,
        "endUnit": 7,
    },
]

FEED_JSON = json.dumps({"studentTableVm": {"lessons": LESSONS}})

FEED_PAGE_EMBEDDED = (
    "<html><head><title>My Course Table</title></head><body><script>\n"
    "var activities = " + json.dumps(LESSONS) + ";\n"
    "</script></body></html>"
)

FEED_PAGE_EMPTY = """
<html><head><title>Course Table</title></head>
<body><p>No data</p></body></html>
"""

VALIDATE_URL = CONFIG.validate_url

VALIDATION_SUCCESS = """<cas:serviceResponse xmlns:cas="http://www.yale.edu/tp/cas">
  <cas:authenticationSuccess>
    <cas:user>pb21000001</cas:user>
    <cas:attributes><cas:gid>2201234567</cas:gid></cas:attributes>
  </cas:authenticationSuccess>
</cas:serviceResponse>
"""

VALIDATION_FAILURE = """<cas:serviceResponse xmlns:cas="http://www.yale.edu/tp/cas">
  <cas:authenticationFailure code="INVALID_TICKET">
    Ticket ST-1-abc not recognized
  </cas:authenticationFailure>
</cas:serviceResponse>
"""

VALIDATION_SUCCESS_WITHOUT_USER = """<cas:serviceResponse xmlns:cas="http://www.yale.edu/tp/cas">
  <cas:authenticationSuccess><cas:attributes/></cas:authenticationSuccess>
</cas:serviceResponse>
"""
